"""
SQLAlchemy models for CRM entity tables.

One table per entity kind, each row owned by exactly one organization
(tenant). The legacy `firms` / `funds` tables predate the per-kind split
and are only read, never written, by this service.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_uuid() -> str:
    """Primary key default: UUID4 rendered as a 36-char string."""
    return str(uuid.uuid4())


class GeneralPartner(Base):
    """
    GP firm (PE, VC, hedge fund, private debt manager).
    """
    __tablename__ = "entities_gp"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)

    gp_name = Column(String(500), nullable=False)
    firm_type = Column(String(100))  # PE, VC, Hedge Fund, Private Debt

    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_entities_gp_org_name", "org_id", "gp_name"),
    )

    def __repr__(self) -> str:
        return f"<GeneralPartner {self.gp_name}>"


class LimitedPartner(Base):
    """
    LP investor (pension, endowment, family office, sovereign wealth, ...).
    """
    __tablename__ = "entities_lp"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)

    lp_name = Column(String(500), nullable=False)
    firm_type = Column(String(100))  # Pension Fund, Endowment, Family Office, ...

    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_entities_lp_org_name", "org_id", "lp_name"),
    )

    def __repr__(self) -> str:
        return f"<LimitedPartner {self.lp_name}>"


class Fund(Base):
    """
    Fund vehicle managed by a GP.
    """
    __tablename__ = "entities_fund"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)

    fund_name = Column(String(500), nullable=False)
    fund_type = Column(String(100))  # Buyout, Growth Equity, Venture Capital, ...

    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_entities_fund_org_name", "org_id", "fund_name"),
    )

    def __repr__(self) -> str:
        return f"<Fund {self.fund_name}>"


class PortfolioCompany(Base):
    """
    Company held (or tracked) by a fund.
    """
    __tablename__ = "entities_portfolio_company"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)

    company_name = Column(String(500), nullable=False)
    company_type = Column(String(100))  # Private, Public, Subsidiary

    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_entities_portfolio_company_org_name", "org_id", "company_name"),
    )

    def __repr__(self) -> str:
        return f"<PortfolioCompany {self.company_name}>"


class ServiceProvider(Base):
    """
    Advisor, law firm or placement agent.
    """
    __tablename__ = "entities_service_provider"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)

    provider_name = Column(String(500), nullable=False)
    provider_type = Column(String(100))  # Advisory, Legal, Placement Agent

    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_entities_service_provider_org_name", "org_id", "provider_name"),
    )

    def __repr__(self) -> str:
        return f"<ServiceProvider {self.provider_name}>"


class Contact(Base):
    """
    Person, optionally affiliated with a company.
    """
    __tablename__ = "entities_contact"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)

    first_name = Column(String(200))
    last_name = Column(String(200))
    company_name = Column(String(500))

    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_entities_contact_org_last_first", "org_id", "last_name", "first_name"),
    )

    def __repr__(self) -> str:
        return f"<Contact {self.first_name} {self.last_name}>"


# =============================================================================
# LEGACY TABLES (pre-migration schema, read-only)
# =============================================================================

class LegacyFirm(Base):
    """Firm row from the pre-migration schema (GPs before the split)."""
    __tablename__ = "firms"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)
    name = Column(String(500))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<LegacyFirm {self.name}>"


class LegacyFund(Base):
    """Fund row from the pre-migration schema."""
    __tablename__ = "funds"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)
    name = Column(String(500))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<LegacyFund {self.name}>"
