"""Module, class and course offering (allocation) tables."""

from datetime import date

from sqlalchemy import Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coursewatch.db.base import Base, TimestampMixin
from coursewatch.db.models.user import UserRow


class ModuleRow(Base, TimestampMixin):
    __tablename__ = "modules"

    module_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)


class ClassRow(Base, TimestampMixin):
    __tablename__ = "classes"

    class_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class CourseOfferingRow(Base, TimestampMixin):
    __tablename__ = "course_offerings"

    allocation_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    module_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("modules.module_id"), nullable=False
    )
    class_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("classes.class_id"), nullable=False
    )
    trimester: Mapped[str] = mapped_column(String(5), nullable=False)
    intake: Mapped[str] = mapped_column(String(5), nullable=False)
    facilitator_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("users.user_id"), nullable=True, index=True
    )

    module: Mapped[ModuleRow] = relationship()
    class_: Mapped[ClassRow] = relationship()
    facilitator: Mapped[UserRow | None] = relationship()

    def course_info(self) -> dict:
        """Denormalized course facts embedded in notification metadata."""
        return {
            "moduleName": self.module.name,
            "moduleCode": self.module.code,
            "className": self.class_.name,
            "trimester": self.trimester,
            "intake": self.intake,
        }
