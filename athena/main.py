"""
Main entry point for the Athena engine.
"""

import logging
import threading
import time
from datetime import date, timedelta
from typing import Optional

from .api.rest_api import AthenaRestAPI
from .config import load_config, load_config_file
from .core.entities import Scope
from .core.enums import ReportFormat
from .core.rollups import ResolutionFailed
from .engine import JoinResolver
from .persistence import EntityStoreFactory
from .services import ConcurrencyManager, PerformanceService, RecordService, RollupCache

logger = logging.getLogger(__name__)


class AthenaPlatform:
    """Wires the store, cache, services and REST API together."""

    def __init__(self, config: Optional[dict] = None):
        self._config = load_config(config)
        self._store = None
        self._concurrency_manager = None
        self._cache = None
        self._performance_service = None
        self._record_service = None
        self._rest_api = None
        self._rest_thread = None
        self._running = False

        # Initialize platform
        self._initialize_platform()

    @property
    def performance_service(self) -> PerformanceService:
        return self._performance_service

    @property
    def record_service(self) -> RecordService:
        return self._record_service

    @property
    def rest_api(self) -> AthenaRestAPI:
        return self._rest_api

    def _initialize_platform(self):
        """Initialize the platform with all services."""
        logger.info("Initializing Athena platform...")

        store_type = self._config["store_type"]
        self._store = EntityStoreFactory.create_store(store_type, **self._config["store_config"])
        logger.info("Entity store initialized: %s", store_type)

        self._concurrency_manager = ConcurrencyManager(max_workers=int(self._config["max_workers"]))
        resolver = JoinResolver(self._store, max_in_values=int(self._config["max_in_values"]))
        self._cache = RollupCache(
            self._store,
            self._concurrency_manager,
            resolver=resolver,
            auto_refresh=bool(self._config["auto_refresh"]),
            max_watched_scopes=int(self._config["max_watched_scopes"]),
        )
        self._performance_service = PerformanceService(self._cache)
        self._record_service = RecordService(self._store)
        logger.info("Services initialized")

        self._rest_api = AthenaRestAPI(self._performance_service, self._record_service)
        logger.info("Athena platform initialized")

    def start_rest_server(self, host: Optional[str] = None, port: Optional[int] = None):
        """Start the REST server."""
        if self._rest_thread is not None:
            logger.warning("REST server already running")
            return

        import uvicorn

        host = host or self._config["rest_host"]
        port = port or int(self._config["rest_port"])

        def run_server():
            uvicorn.run(
                self._rest_api.app,
                host=host,
                port=port,
                log_level=str(self._config["log_level"]).lower()
            )

        # Start server in a separate thread
        self._rest_thread = threading.Thread(target=run_server, daemon=True)
        self._rest_thread.start()

        logger.info("REST server started on %s:%d (docs at /docs)", host, port)

    def start_platform(self, rest_port: Optional[int] = None):
        """Start the entire platform."""
        if self._running:
            logger.warning("Platform already running")
            return
        self.start_rest_server(port=rest_port)
        self._running = True

    def stop_platform(self):
        """Stop the platform."""
        logger.info("Stopping Athena platform...")
        self._cache.close()
        self._concurrency_manager.cleanup()
        self._store.close()
        self._running = False
        logger.info("Athena platform stopped")

    def create_sample_data(self) -> str:
        """Create a small class for demonstration; returns its id."""
        records = self._record_service
        today = date.today()
        math = records.create_class("Algebra I", teacher_id="teacher-1", subject="Mathematics")
        class_id = math["id"]

        students = ["student-1", "student-2", "student-3"]
        for student_id in students:
            records.enroll(student_id, class_id)

        quiz = records.create_assignment(class_id, "Quiz 1", due_date=today - timedelta(days=3))
        essay = records.create_assignment(class_id, "Essay", due_date=today - timedelta(days=1), total_points=50)

        scores = {"student-1": (95, 46), "student-2": (82, 40), "student-3": (68, None)}
        for student_id, (quiz_score, essay_score) in scores.items():
            submission = records.submit(quiz["id"], student_id)
            records.grade(submission["id"], quiz_score)
            if essay_score is not None:
                submission = records.submit(essay["id"], student_id)
                records.grade(submission["id"], essay_score)

        for offset in range(3):
            day = today - timedelta(days=offset)
            for index, student_id in enumerate(students):
                status = "absent" if index == offset else "present"
                records.mark_attendance(class_id, student_id, status, day=day)

        logger.info("Sample data created for class %s", class_id)
        return class_id

    def run_demo(self):
        """Run a demonstration of the platform."""
        class_id = self.create_sample_data()
        scope = Scope.for_class(class_id)

        outcome = self._performance_service.refresh(scope, timeout=30)
        if isinstance(outcome, ResolutionFailed):
            print(f"Resolution failed: {outcome.message}")
            return

        print("\n=== Class Overview ===")
        for key, value in outcome.overview().items():
            print(f"{key}: {value}")

        print("\n=== Performance Distribution ===")
        for band, count in outcome.distribution:
            print(f"{band.value}: {count}")

        print("\n=== Student Report (CSV) ===")
        print(self._performance_service.export(scope, ReportFormat.CSV))

        print(f"Cache statistics: {self._performance_service.get_statistics()}")


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Athena performance aggregation engine")
    parser.add_argument("--rest-port", type=int, help="REST server port")
    parser.add_argument("--demo", action="store_true", help="Run demo mode")
    parser.add_argument("--config", type=str, help="Configuration file path")
    parser.add_argument("--env-file", type=str, help="Path to a .env file")

    args = parser.parse_args()

    # Load configuration
    overrides = load_config_file(args.config) if args.config else {}
    config = load_config(overrides, env_file=args.env_file)
    logging.basicConfig(
        level=getattr(logging, str(config["log_level"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.demo:
        config["store_type"] = "memory"

    # Create and start platform
    platform = AthenaPlatform(config)

    try:
        if args.demo:
            platform.run_demo()
            platform.stop_platform()
        else:
            platform.start_platform(args.rest_port)

            # Keep running
            print("\nPlatform is running. Press Ctrl+C to stop.")
            while True:
                time.sleep(1)

    except KeyboardInterrupt:
        print("\nShutting down...")
        platform.stop_platform()


if __name__ == "__main__":
    main()
