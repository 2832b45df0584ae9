from siteportal.models.person import Person  # noqa: F401
from siteportal.models.rbac import AppRole, PersonRole, Role  # noqa: F401
from siteportal.models.site import (  # noqa: F401
    AdminNotification,
    Asset,
    Client,
    DocumentAssignment,
    DocumentSignature,
    DocumentType,
    EnrollmentStatus,
    Project,
    ProjectEnrollment,
    ProjectSignOn,
    SiteDocument,
)
