"""
News Intelligence - Database Models.

Tables:
- label_projects: annotation projects (news projects carry news tasks)
- annotation_tasks: source tasks whose JSON metadata describes a news item
- news: canonical news record, one per source task, driven by the
  processing state machine
- ai_outputs: structured AI analysis of a news record
- news_entity_links: news item -> resolved CRM entity
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, JSON, Enum, ForeignKey,
    Index, UniqueConstraint,
)

from app.core.models import Base, new_uuid


class NewsProcessingStatus(str, enum.Enum):
    """Processing state of a news record - ONLY these values allowed."""
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# States from which processing may be (re)initiated
CLAIMABLE_STATUSES = (NewsProcessingStatus.NEW, NewsProcessingStatus.FAILED)


class AIOutputStatus(str, enum.Enum):
    AI_DONE = "AI_DONE"
    LINKED = "LINKED"


class LabelProject(Base):
    """Annotation project owned by an organization."""
    __tablename__ = "label_projects"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    label_type = Column(String(50), default="text")
    project_category = Column(String(50), default="news")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<LabelProject {self.name}>"


class AnnotationTask(Base):
    """
    Source task for a news item.

    The organization is only reachable through the project, so every read
    must join label_projects to enforce tenant scope.
    """
    __tablename__ = "annotation_tasks"

    id = Column(String(36), primary_key=True, default=new_uuid)
    project_id = Column(String(36), ForeignKey("label_projects.id"), nullable=False, index=True)
    assigned_to = Column(String(36))
    status = Column(String(50), default="pending")
    # headline, source_name, publish_date, url, raw_text, cleaned_text, news_id
    task_metadata = Column("metadata", JSON)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<AnnotationTask {self.id} project={self.project_id}>"


class News(Base):
    """
    Canonical news record.

    Created once per source task; mutated only by the processing state
    machine; never deleted by this service.
    """
    __tablename__ = "news"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)

    headline = Column(Text)
    source_name = Column(String(500))
    publish_date = Column(String(50))
    url = Column(Text)
    raw_text = Column(Text)
    cleaned_text = Column(Text)

    processing_status = Column(
        Enum(NewsProcessingStatus, native_enum=False, length=20),
        nullable=False,
        default=NewsProcessingStatus.NEW,
        index=True,
    )
    processing_attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    next_retry_at = Column(DateTime)

    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_news_org_url", "org_id", "url"),
        Index("ix_news_status_created", "processing_status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<News(id={self.id}, status={self.processing_status})>"


class AIOutput(Base):
    """Structured AI analysis of a source record."""
    __tablename__ = "ai_outputs"

    id = Column(String(36), primary_key=True, default=new_uuid)
    org_id = Column(String(36), nullable=False, index=True)
    source_type = Column(String(50), nullable=False, default="news")
    source_id = Column(String(36), nullable=False, index=True)
    output_json = Column(JSON, nullable=False)
    status = Column(
        Enum(AIOutputStatus, native_enum=False, length=20),
        nullable=False,
        default=AIOutputStatus.AI_DONE,
    )
    model = Column(String(100))
    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<AIOutput(id={self.id}, source={self.source_type}:{self.source_id})>"


class NewsEntityLink(Base):
    """Association between a news item and a resolved entity."""
    __tablename__ = "news_entity_links"

    id = Column(String(36), primary_key=True, default=new_uuid)
    news_id = Column(String(36), ForeignKey("news.id", ondelete="CASCADE"), nullable=False, index=True)
    org_id = Column(String(36), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)  # canonical kind
    entity_id = Column(String(36), nullable=False)
    match_type = Column(String(20), default="manual")  # manual, exact, created
    created_by = Column(String(36))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("news_id", "entity_type", "entity_id", name="uq_news_entity_link"),
        Index("ix_news_entity_links_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<NewsEntityLink(news={self.news_id}, {self.entity_type}:{self.entity_id})>"
