"""Unit tests for app.core.config: DATABASE_URL validation and driver selection."""

import unittest

from pydantic import ValidationError

from app.core.config import Settings


def _url(value: str) -> str:
    return Settings(DATABASE_URL=value, _env_file=None).DATABASE_URL


class TestDatabaseUrl(unittest.TestCase):
    def test_default_names_psycopg2(self) -> None:
        default = Settings.model_fields["DATABASE_URL"].default
        self.assertTrue(default.startswith("postgresql+psycopg2://"))

    def test_bare_postgres_schemes_use_psycopg2(self) -> None:
        for scheme in ("postgresql://", "postgres://", "postgres+psycopg2://"):
            with self.subTest(scheme=scheme):
                self.assertEqual(
                    _url(f"{scheme}u:p@db:5432/taskify"),
                    "postgresql+psycopg2://u:p@db:5432/taskify",
                )

    def test_explicit_driver_and_sqlite_unchanged(self) -> None:
        self.assertEqual(
            _url("postgresql+psycopg2://u:p@db/taskify"), "postgresql+psycopg2://u:p@db/taskify"
        )
        self.assertEqual(_url("sqlite://"), "sqlite://")
        self.assertEqual(_url("sqlite:///./taskify.db"), "sqlite:///./taskify.db")

    def test_other_schemes_rejected(self) -> None:
        for value in ("", "mysql://u:p@db/taskify", "postgresql+psycopg://u:p@db/taskify"):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    _url(value)


if __name__ == "__main__":
    unittest.main()
