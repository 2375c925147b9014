from sqlalchemy import Column, String
from fundmon.core.database import Base
from fundmon.models.base import TimestampMixin

class Project(Base, TimestampMixin):
    """
    Project universe metadata used for category and token classification.
    """
    __tablename__ = "projects"

    project_id = Column(String(128), primary_key=True)
    project_name = Column(String(255), nullable=True)
    project_stack = Column(String(100), nullable=True)
    project_tag = Column(String(100), nullable=True)
    project_sub_tag = Column(String(100), nullable=True)
    coingecko_id = Column(String(100), nullable=True)
