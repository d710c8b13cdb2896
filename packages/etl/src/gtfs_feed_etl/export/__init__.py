from .exporter import export_columns, export_feed, table_frame

__all__ = ["export_columns", "export_feed", "table_frame"]
