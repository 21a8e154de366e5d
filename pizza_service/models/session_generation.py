from sqlalchemy import Column, Integer

from pizza_service.core.database import Base


class SessionGeneration(Base):
    __tablename__ = "session_generations"

    # no FK: the counter must survive the user row
    user_id = Column(Integer, primary_key=True, autoincrement=False)
    generation = Column(Integer, nullable=False, default=0)
