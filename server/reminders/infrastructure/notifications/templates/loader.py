# server/reminders/infrastructure/notifications/templates/loader.py
from __future__ import annotations
"""
Chargement des templates d'e-mail par défaut depuis le paquet, et rendu des
fragments HTML générés (tableaux des e-mails agrégés) via Jinja2.
"""
from functools import lru_cache
from importlib.resources import files

from jinja2 import Environment, FunctionLoader, StrictUndefined


@lru_cache(maxsize=None)
def load_template(name: str) -> str:
    """
    Lit un fichier template situé dans le même package.
    Ex: load_template("level1_template.html")
    """
    return files(__package__).joinpath(name).read_text(encoding="utf-8")


# autoescape : noms et adresses viennent de l'annuaire
_env = Environment(loader=FunctionLoader(load_template), autoescape=True, undefined=StrictUndefined)


def render_fragment(name: str, **context) -> str:
    """Ex: render_fragment("employee_table.html", course=course, users=users)"""
    return _env.get_template(name).render(**context)
