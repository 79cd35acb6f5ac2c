"""Document store and analysis tables (tenant schema).

Provisioned with every tenant schema; the generation and analysis pipeline
that fills them sits outside this service.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import JSON, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grcnexus.database import TenantBase
from grcnexus.models.mixins import GRCRecordMixin, RecordMixin


class Document(GRCRecordMixin, TenantBase):
    __tablename__ = "documents"

    document_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class DocumentAnalysis(RecordMixin, TenantBase):
    __tablename__ = "document_analyses"

    document_id: Mapped[str] = mapped_column(String(36), index=True)
    analysis_type: Mapped[str] = mapped_column(String(50))
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class Chunk(RecordMixin, TenantBase):
    __tablename__ = "chunks"

    document_id: Mapped[str] = mapped_column(String(36), index=True)
    position: Mapped[int] = mapped_column(Integer)
    content: Mapped[str] = mapped_column(Text)


class Embedding(RecordMixin, TenantBase):
    __tablename__ = "embeddings"

    chunk_id: Mapped[str] = mapped_column(String(36), index=True)
    model_name: Mapped[str] = mapped_column(String(100))
    vector: Mapped[list] = mapped_column(JSON)


class SimilarityScore(RecordMixin, TenantBase):
    __tablename__ = "similarity_scores"

    source_chunk_id: Mapped[str] = mapped_column(String(36), index=True)
    target_chunk_id: Mapped[str] = mapped_column(String(36), index=True)
    score: Mapped[float] = mapped_column(Float)
