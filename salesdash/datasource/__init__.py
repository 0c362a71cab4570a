from salesdash.datasource.base import BaseDataSource, Record
from salesdash.datasource.sheets import SheetsDataSource

__all__ = ["BaseDataSource", "Record", "SheetsDataSource"]
