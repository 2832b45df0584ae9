"""site portal schema

Revision ID: 3f1a9c2b7d10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "3f1a9c2b7d10"
down_revision = None
branch_labels = None
depends_on = None

DOCUMENT_TYPES = (
    "SWMS",
    "JSEA",
    "Site Safety Plan",
    "Demolition Plan",
    "Induction Checklist",
    "Training Certificate",
    "Other",
)
ENROLLMENT_STATUSES = ("pending", "approved", "rejected")


def upgrade() -> None:
    # --- Enums ---
    documenttype = sa.Enum(*DOCUMENT_TYPES, name="documenttype")
    enrollmentstatus = sa.Enum(*ENROLLMENT_STATUSES, name="enrollmentstatus")
    documenttype.create(op.get_bind(), checkfirst=True)
    enrollmentstatus.create(op.get_bind(), checkfirst=True)

    # --- People and roles ---
    op.create_table(
        "people",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("full_name", sa.String(length=160), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "roles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "person_roles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("role_id", sa.UUID(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("person_id", "role_id", name="uq_person_roles_person_role"),
    )

    # --- Clients, assets, projects ---
    op.create_table(
        "clients",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("contact_person", sa.String(length=160), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("contact_phone", sa.String(length=40), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "assets",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("registration_number", sa.String(length=40), nullable=True),
        sa.Column("asset_type", sa.String(length=80), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("client_id", sa.UUID(), nullable=True),
        sa.Column("project_number", sa.String(length=80), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])
    op.create_index("ix_projects_is_active", "projects", ["is_active"])

    # --- Site documents ---
    op.create_table(
        "site_documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column(
            "document_type",
            sa.Enum(*DOCUMENT_TYPES, name="documenttype", create_type=False),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("file_url", sa.String(length=1024), nullable=True),
        sa.Column("requires_signature", sa.Boolean(), nullable=False),
        sa.Column("version", sa.String(length=40), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_site_documents_project_id", "site_documents", ["project_id"])
    op.create_index(
        "ix_site_documents_document_type", "site_documents", ["document_type"]
    )

    # --- Enrollment, sign-on, signatures, assignments ---
    op.create_table(
        "project_enrollments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*ENROLLMENT_STATUSES, name="enrollmentstatus", create_type=False),
            nullable=False,
        ),
        sa.Column("asset_id", sa.UUID(), nullable=True),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.UUID(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["approved_by"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "project_id", "person_id", name="uq_project_enrollments_project_person"
        ),
    )
    op.create_index(
        "ix_project_enrollments_person_id", "project_enrollments", ["person_id"]
    )

    op.create_table(
        "project_signons",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("signon_date", sa.Date(), nullable=False),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "project_id",
            "person_id",
            "signon_date",
            name="uq_project_signons_project_person_day",
        ),
    )
    op.create_index(
        "ix_project_signons_project_signed_at",
        "project_signons",
        ["project_id", "signed_at"],
    )

    op.create_table(
        "document_signatures",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["site_documents.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id", "person_id", name="uq_document_signatures_document_person"
        ),
    )
    op.create_index(
        "ix_document_signatures_person_id", "document_signatures", ["person_id"]
    )

    op.create_table(
        "document_assignments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("can_sign", sa.Boolean(), nullable=False),
        sa.Column("assigned_by", sa.UUID(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["site_documents.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["assigned_by"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id",
            "person_id",
            name="uq_document_assignments_document_person",
        ),
    )
    op.create_index(
        "ix_document_assignments_person_id", "document_assignments", ["person_id"]
    )

    # --- Admin notifications ---
    op.create_table(
        "admin_notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("related_id", sa.String(length=36), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_admin_notifications_person_id", "admin_notifications", ["person_id"]
    )
    op.create_index(
        "ix_admin_notifications_is_read", "admin_notifications", ["is_read"]
    )


def downgrade() -> None:
    op.drop_index("ix_admin_notifications_is_read", table_name="admin_notifications")
    op.drop_index("ix_admin_notifications_person_id", table_name="admin_notifications")
    op.drop_table("admin_notifications")

    op.drop_index(
        "ix_document_assignments_person_id", table_name="document_assignments"
    )
    op.drop_table("document_assignments")

    op.drop_index("ix_document_signatures_person_id", table_name="document_signatures")
    op.drop_table("document_signatures")

    op.drop_index("ix_project_signons_project_signed_at", table_name="project_signons")
    op.drop_table("project_signons")

    op.drop_index("ix_project_enrollments_person_id", table_name="project_enrollments")
    op.drop_table("project_enrollments")

    op.drop_index("ix_site_documents_document_type", table_name="site_documents")
    op.drop_index("ix_site_documents_project_id", table_name="site_documents")
    op.drop_table("site_documents")

    op.drop_index("ix_projects_is_active", table_name="projects")
    op.drop_index("ix_projects_client_id", table_name="projects")
    op.drop_table("projects")
    op.drop_table("assets")
    op.drop_table("clients")

    op.drop_table("person_roles")
    op.drop_table("roles")
    op.drop_table("people")

    for enum_name in ["enrollmentstatus", "documenttype"]:
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
