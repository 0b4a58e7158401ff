# jobfeed/providers/higheredjobs.py
from .base import SourceFields, register

# institution doubles as the posting's company (see services.fetcher)
HIGHEREDJOBS = register(SourceFields(
    source="higheredjobs",
    text_fields={
        "institution": ("institution", "he:institution"),
        "department": ("department", "he:department"),
        "job_level": ("jobLevel", "he:job_level"),
        "application_deadline": ("deadline", "he:deadline"),
    },
))
