"""Initial schema: managed domains, origin rules, optimized endpoints, certificates."""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="custom"),
        sa.Column("cert_pem", sa.Text(), nullable=False),
        sa.Column("key_pem", sa.Text(), nullable=False),
        sa.Column("issuer", sa.String(length=500)),
        sa.Column("expires_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_certificates_id", "certificates", ["id"])
    op.create_index("ix_certificates_domain", "certificates", ["domain"])

    op.create_table(
        "domain_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subdomain", sa.String(length=255), nullable=False),
        sa.Column("root_domain", sa.String(length=255), nullable=False),
        sa.Column("fallback_origin", sa.String(length=255), nullable=False),
        sa.Column("optimized_targets", sa.JSON(), nullable=False),
        sa.Column("origin_port", sa.Integer()),
        sa.Column("cert_mode", sa.String(length=20), nullable=False, server_default="none"),
        sa.Column(
            "certificate_id",
            sa.Integer(),
            sa.ForeignKey("certificates.id", ondelete="SET NULL"),
        ),
        sa.Column("cert_path", sa.String(length=512)),
        sa.Column("key_path", sa.String(length=512)),
        sa.Column("edge_hostname_id", sa.String(length=64)),
        sa.Column("dns_record_id_primary", sa.String(length=64)),
        sa.Column("dns_record_id_fallback", sa.String(length=64)),
        sa.Column("status", sa.String(length=64), nullable=False, server_default="pending"),
        sa.Column("last_checked_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime()),
        sa.UniqueConstraint("subdomain", "root_domain", name="uq_domain_configs_subdomain_root"),
    )
    op.create_index("ix_domain_configs_id", "domain_configs", ["id"])
    op.create_index("ix_domain_configs_root_domain", "domain_configs", ["root_domain"])

    op.create_table(
        "origin_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "domain_config_id",
            sa.Integer(),
            sa.ForeignKey("domain_configs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("match_pattern", sa.String(length=255), nullable=False),
        sa.Column("origin_host", sa.String(length=255), nullable=False),
        sa.Column("origin_port", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_origin_rules_id", "origin_rules", ["id"])
    op.create_index("ix_origin_rules_domain_config_id", "origin_rules", ["domain_config_id"])

    op.create_table(
        "optimized_endpoints",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False, server_default="hostname"),
        sa.Column("region", sa.String(length=64)),
        sa.Column("measured_latency", sa.Float()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_checked_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("address", name="uq_optimized_endpoints_address"),
    )
    op.create_index("ix_optimized_endpoints_id", "optimized_endpoints", ["id"])


def downgrade() -> None:
    op.drop_index("ix_optimized_endpoints_id", table_name="optimized_endpoints")
    op.drop_table("optimized_endpoints")

    op.drop_index("ix_origin_rules_domain_config_id", table_name="origin_rules")
    op.drop_index("ix_origin_rules_id", table_name="origin_rules")
    op.drop_table("origin_rules")

    op.drop_index("ix_domain_configs_root_domain", table_name="domain_configs")
    op.drop_index("ix_domain_configs_id", table_name="domain_configs")
    op.drop_table("domain_configs")

    op.drop_index("ix_certificates_domain", table_name="certificates")
    op.drop_index("ix_certificates_id", table_name="certificates")
    op.drop_table("certificates")
