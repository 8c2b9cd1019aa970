from tour_ops_app.exports.excel import export_tour_workbook, read_tour_workbook
from tour_ops_app.exports.sql_backup import generate_sql_backup, sql_literal
from tour_ops_app.exports.text_export import export_tour_text, parse_tour_text

__all__ = [
    "export_tour_text",
    "export_tour_workbook",
    "generate_sql_backup",
    "parse_tour_text",
    "read_tour_workbook",
    "sql_literal",
]
