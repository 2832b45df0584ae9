from prometheus_client import Counter

SIGNONS_TOTAL = Counter(
    "siteportal_signons_total",
    "Project sign-on submissions",
    ["outcome"],
)
DOCUMENT_SIGNATURES_TOTAL = Counter(
    "siteportal_document_signatures_total",
    "Document signature submissions",
    ["outcome"],
)
ENROLLMENTS_TOTAL = Counter(
    "siteportal_enrollments_total",
    "Project enrollments created by the enrollment gate",
)
REPORTS_GENERATED_TOTAL = Counter(
    "siteportal_reports_generated_total",
    "PDF reports generated",
    ["report"],
)
