from .table_view import TableView

__all__ = ["TableView"]
