from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, UniqueConstraint
from payroll_engine.database import Base
import enum

class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    HALF_DAY = "HALF_DAY"
    ON_LEAVE = "ON_LEAVE"

class Attendance(Base):
    __tablename__ = "attendances"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    status = Column(String, default=AttendanceStatus.ABSENT.value)
    check_in = Column(DateTime, nullable=True)
    check_out = Column(DateTime, nullable=True)  # Null while the shift is still open
    working_hours = Column(Numeric(8, 2), nullable=True)
