from .csv_export import (
    AWB_BATCH_HEADER,
    STATEMENT_HEADER,
    export_awb_batch,
    export_statement,
    render_awb_batch,
    render_statement,
)

__all__ = [
    "AWB_BATCH_HEADER",
    "STATEMENT_HEADER",
    "export_awb_batch",
    "export_statement",
    "render_awb_batch",
    "render_statement",
]
