"""PageCite - page-cited streaming answers over a paginated document corpus."""

__version__ = "0.1.0"
