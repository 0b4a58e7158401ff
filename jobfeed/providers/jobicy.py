# jobfeed/providers/jobicy.py
from .base import SourceFields, register

JOBICY = register(SourceFields(
    source="jobicy",
    text_fields={
        "company": ("company", "jobicy:company", "job_listing:company"),
        "location": ("location", "jobicy:location", "job_listing:location"),
        "job_type": ("jobType", "jobicy:job_type", "job_listing:job_type"),
        "salary": ("salary", "jobicy:salary"),
        "company_url": ("jobicy:company_url", "job_listing:company_url"),
    },
    list_fields={
        "tags": ("tags", "jobicy:tags"),
    },
))
