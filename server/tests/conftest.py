# server/tests/conftest.py
"""
Conftest *global* pour toute la suite de tests.

Points clés :
- ENV sûres posées AVANT tout import `reminders.*` (Settings() les lit à l'import) :
  SQLite in-memory, pas de SMTP, pas d'annuaire HTTP, pas de webhook in-app.
- Pour les tests @unit uniquement :
  - Active Celery en mode "eager" (exécution in-process).
  - Monte une DB SQLite in-memory partagée + Base.create_all.
  - Patch de la pile DB : get_sync_session / get_session du module session
    (les services résolvent la session à l'appel, un seul point à patcher).
  - Purge des tables après chaque test.
"""

import importlib
import os
import pkgutil
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "memory://")
os.environ.setdefault("SITE_NAME", "Test Academy")
os.environ.setdefault("SITE_URL", "https://lms.example.test")


# ============================================================================
# Helpers
# ============================================================================
def _is_unit(request: pytest.FixtureRequest) -> bool:
    """True si le test courant est marqué @pytest.mark.unit."""
    return request.node.get_closest_marker("unit") is not None


# ============================================================================
# UNIT-ONLY: Celery en mode "eager" (tâches exécutées in-process)
# ============================================================================
@pytest.fixture(autouse=True)
def celery_eager(request):
    """
    ⚠️ Fixture générateur : doit toujours 'yield', même hors unit.
    """
    if not _is_unit(request):
        yield
        return

    from reminders.workers.celery_app import celery

    prev_always = celery.conf.task_always_eager
    prev_propag = celery.conf.task_eager_propagates
    prev_backend = celery.conf.result_backend
    celery.conf.task_always_eager = True
    # Sans propagation, Celery rejoue in-process les retries (autoretry_for) ;
    # les échecs définitifs remontent toujours via EagerResult.get().
    celery.conf.task_eager_propagates = False
    # "memory://" (REDIS_URL de test) est un broker valide mais pas un backend
    # de résultats : les tâches eager stockent leur résultat en mémoire.
    celery.conf.result_backend = "cache+memory://"
    try:
        yield
    finally:
        celery.conf.task_always_eager = prev_always
        celery.conf.task_eager_propagates = prev_propag
        celery.conf.result_backend = prev_backend


# ============================================================================
# UNIT-ONLY: DB SQLite in-memory partagée + Base.metadata.create_all
# ============================================================================
@pytest.fixture(scope="session")
def _sqlite_engine_unit():
    """
    Engine in-memory **partagé** entre connexions (StaticPool + check_same_thread=False).
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Charger tous les modèles avant create_all
    from reminders.infrastructure.persistence.database import base as db_base
    from reminders.infrastructure.persistence.database import models as models_pkg

    for _finder, name, _ispkg in pkgutil.walk_packages(
        models_pkg.__path__, models_pkg.__name__ + "."
    ):
        importlib.import_module(name)

    db_base.Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="session")
def _Session_unit(_sqlite_engine_unit):
    return sessionmaker(
        bind=_sqlite_engine_unit,
        future=True,
        autoflush=True,
        expire_on_commit=False,
    )


@pytest.fixture
def Session(request, _Session_unit):
    """
    Sessionmaker à utiliser comme `with Session() as s:` (tests unitaires).
    Sert aussi de `session_factory` pour les services.
    """
    if not _is_unit(request):
        pytest.skip("Session fixture is only available for unit tests")
    return _Session_unit


@pytest.fixture(autouse=True)
def _clear_db_between_unit_tests(request, _Session_unit):
    """Après chaque test unitaire, on vide toutes les tables."""
    if not _is_unit(request):
        yield
        return

    yield
    from reminders.infrastructure.persistence.database import base as db_base

    with _Session_unit() as s:
        for table in reversed(db_base.Base.metadata.sorted_tables):
            s.execute(table.delete())
        s.commit()


# ============================================================================
# UNIT-ONLY: Patch DB (get_sync_session + get_session)
# ============================================================================
@pytest.fixture(autouse=True)
def patch_db_stack_for_unit(request, monkeypatch, _Session_unit):
    """
    Rend impossible l'usage de Postgres pendant les tests unitaires : les
    services (sans session_factory), les tâches Celery et la dépendance
    FastAPI `get_db` passent tous par ce module.
    """
    if not _is_unit(request):
        return

    @contextmanager
    def _fake_get_sync_session():
        with _Session_unit() as s:
            yield s

    sess_mod = importlib.import_module("reminders.infrastructure.persistence.database.session")
    monkeypatch.setattr(sess_mod, "get_sync_session", _fake_get_sync_session)
    monkeypatch.setattr(sess_mod, "get_session", _Session_unit)
