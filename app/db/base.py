# Import all models so that Base.metadata sees every table
from app.db.base_class import Base  # noqa: F401
from app.db.models.document_job import DocumentJob  # noqa: F401
from app.db.models.planning_document import PlanningDocument  # noqa: F401
from app.db.models.planning_document_analysis import PlanningDocumentAnalysis  # noqa: F401
from app.db.models.request_log import RequestLog  # noqa: F401
