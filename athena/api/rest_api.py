"""
REST API for the Athena engine using FastAPI.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..core.entities import Scope
from ..core.enums import ReportFormat, ScopeKind, TimeWindow
from ..core.exceptions import StoreError, ValidationError
from ..core.rollups import ResolutionFailed, StaleSnapshot
from ..services import PerformanceService, RecordService


# Pydantic models for API
class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    teacher_id: str = Field(..., min_length=1, max_length=200)
    subject: Optional[str] = Field(None, max_length=100)
    schedule: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    class_id: Optional[str] = None


class EnrollmentCreate(BaseModel):
    student_id: str = Field(..., min_length=1)
    class_id: str = Field(..., min_length=1)


class AssignmentCreate(BaseModel):
    class_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    due_date: Optional[date] = None
    total_points: float = Field(100, gt=0)
    assignment_id: Optional[str] = None


class SubmissionCreate(BaseModel):
    assignment_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    content: Optional[str] = None


class GradeUpdate(BaseModel):
    grade: float = Field(..., ge=0)
    feedback: Optional[str] = None


class AttendanceMark(BaseModel):
    class_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    status: str = Field(..., pattern=r'^(present|absent)$')
    day: Optional[date] = None


class AthenaRestAPI:
    """REST API over the performance and record services."""

    def __init__(self, performance_service: PerformanceService, record_service: RecordService):
        self._performance_service = performance_service
        self._record_service = record_service

        # Create FastAPI app
        self.app = FastAPI(
            title="Athena Performance API",
            description="Performance aggregation for school dashboards",
            version=__version__,
            docs_url="/docs",
            redoc_url="/redoc"
        )

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Setup routes
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/", response_model=Dict[str, str])
        async def root():
            """Root endpoint."""
            return {
                "message": "Athena Performance API",
                "version": __version__,
                "docs": "/docs"
            }

        @self.app.get("/health", response_model=Dict[str, str])
        async def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

        # Performance endpoints
        @self.app.get("/performance/{kind}/{identifier}")
        def get_performance(kind: str, identifier: str, window: str = "all"):
            """Current snapshot, or 202 with the stale marker while recomputing."""
            scope = self._scope(kind, identifier, window)
            try:
                result = self._performance_service.get_snapshot(scope)
            except StoreError as e:
                raise HTTPException(status_code=503, detail=e.message)

            if isinstance(result, StaleSnapshot):
                return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=result.to_dict())
            return result.to_dict()

        @self.app.post("/performance/{kind}/{identifier}/refresh")
        def refresh_performance(kind: str, identifier: str, window: str = "all"):
            """Recompute a scope and wait for the outcome."""
            scope = self._scope(kind, identifier, window)
            try:
                outcome = self._performance_service.refresh(scope)
            except StoreError as e:
                raise HTTPException(status_code=503, detail=e.message)

            if isinstance(outcome, ResolutionFailed):
                raise HTTPException(status_code=503, detail=outcome.message)
            return outcome.to_dict()

        @self.app.get("/performance/{kind}/{identifier}/export")
        def export_performance(kind: str, identifier: str, window: str = "all", format: str = "json"):
            """Export the freshest available snapshot as JSON or CSV."""
            scope = self._scope(kind, identifier, window)
            try:
                report_format = ReportFormat(format.lower())
            except ValueError:
                raise HTTPException(status_code=400, detail=f"Unsupported format: {format}")

            try:
                body = self._performance_service.export(scope, report_format)
            except StoreError as e:
                raise HTTPException(status_code=503, detail=e.message)

            if body is None:
                raise HTTPException(status_code=404, detail="No snapshot available yet")
            media_type = "application/json" if report_format is ReportFormat.JSON else "text/csv"
            return PlainTextResponse(content=body, media_type=media_type)

        @self.app.get("/statistics", response_model=Dict[str, Any])
        async def get_statistics():
            """Rollup cache statistics."""
            return {"cache": self._performance_service.get_statistics()}

        # Record endpoints
        @self.app.post("/classes", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
        def create_class(class_data: ClassCreate):
            """Create a class."""
            return self._write(
                self._record_service.create_class,
                name=class_data.name,
                teacher_id=class_data.teacher_id,
                subject=class_data.subject,
                schedule=class_data.schedule,
                capacity=class_data.capacity,
                class_id=class_data.class_id,
            )

        @self.app.post("/enrollments", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
        def enroll_student(enrollment_data: EnrollmentCreate):
            """Enroll a student in a class."""
            return self._write(
                self._record_service.enroll,
                student_id=enrollment_data.student_id,
                class_id=enrollment_data.class_id,
            )

        @self.app.post("/assignments", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
        def create_assignment(assignment_data: AssignmentCreate):
            """Create an assignment."""
            return self._write(
                self._record_service.create_assignment,
                class_id=assignment_data.class_id,
                title=assignment_data.title,
                due_date=assignment_data.due_date,
                total_points=assignment_data.total_points,
                assignment_id=assignment_data.assignment_id,
            )

        @self.app.post("/submissions", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
        def submit_assignment(submission_data: SubmissionCreate):
            """Submit work for an assignment."""
            return self._write(
                self._record_service.submit,
                assignment_id=submission_data.assignment_id,
                student_id=submission_data.student_id,
                content=submission_data.content,
            )

        @self.app.patch("/submissions/{submission_id}/grade", response_model=Dict[str, Any])
        def grade_submission(submission_id: str, grade_data: GradeUpdate):
            """Grade a submission."""
            return self._write(
                self._record_service.grade,
                submission_id=submission_id,
                grade=grade_data.grade,
                feedback=grade_data.feedback,
            )

        @self.app.post("/attendance", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
        def mark_attendance(attendance_data: AttendanceMark):
            """Mark a student present or absent."""
            return self._write(
                self._record_service.mark_attendance,
                class_id=attendance_data.class_id,
                student_id=attendance_data.student_id,
                status=attendance_data.status,
                day=attendance_data.day,
            )

    @staticmethod
    def _scope(kind: str, identifier: str, window: str) -> Scope:
        """Parse path and query parameters into a scope."""
        try:
            scope_kind = ScopeKind(kind.lower())
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Unknown scope kind: {kind}")
        try:
            time_window = TimeWindow(window.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown window: {window}")
        return Scope(scope_kind, identifier, time_window)

    @staticmethod
    def _write(operation, **kwargs) -> Dict[str, Any]:
        """Run a record write, mapping domain errors to HTTP errors."""
        try:
            return operation(**kwargs)
        except ValidationError as e:
            status_code = 404 if e.error_code == "NOT_FOUND" else 400
            raise HTTPException(status_code=status_code, detail=e.message)
        except StoreError as e:
            raise HTTPException(status_code=503, detail=e.message)
