"""Jours fériés français : dates fixes et fêtes mobiles calculées à partir de Pâques."""
import logging
from datetime import date, timedelta

from models import Holiday, db

logger = logging.getLogger(__name__)

FIXED_HOLIDAYS = (
    (1, 1, "Jour de l'an"),
    (5, 1, "Fête du Travail"),
    (5, 8, "Victoire 1945"),
    (7, 14, "Fête Nationale"),
    (8, 15, "Assomption"),
    (11, 1, "Toussaint"),
    (11, 11, "Armistice 1918"),
    (12, 25, "Noël"),
)

# décalage en jours par rapport au dimanche de Pâques
MOVEABLE_HOLIDAYS = (
    (0, "Dimanche de Pâques"),
    (1, "Lundi de Pâques"),
    (39, "Jeudi de l'Ascension"),
    (50, "Lundi de Pentecôte"),
)


def easter_sunday(year):
    """Calcul de Pâques (algorithme grégorien anonyme, Meeus/Jones/Butcher)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def french_holidays(year):
    """Jours fériés de l'année triés par date, une entrée par date.

    Deux fêtes tombant le même jour (l'Ascension le 1er mai en 2008) sont
    fusionnées sous un libellé commun.
    """
    labels = {}
    easter = easter_sunday(year)
    candidates = [(date(year, month, day), label) for month, day, label in FIXED_HOLIDAYS]
    candidates.extend((easter + timedelta(days=offset), label) for offset, label in MOVEABLE_HOLIDAYS)
    for day, label in candidates:
        labels.setdefault(day, []).append(label)
    return [(day, " / ".join(labels[day])) for day in sorted(labels)]


def generate_holidays(year, created_by=None):
    """Enregistre les jours fériés de l'année absents de la base.

    Retourne (ajoutés, ignorés) ; un jour déjà présent à la même date est ignoré.
    """
    candidates = french_holidays(year)
    existing = {
        holiday.date for holiday in
        Holiday.query.filter(Holiday.date.in_([day for day, _ in candidates])).all()
    }

    added, skipped = [], []
    for day, label in candidates:
        if day in existing:
            skipped.append({"date": day.isoformat(), "label": label,
                            "message": f"A holiday already exists on {day.strftime('%d/%m/%Y')}"})
            continue
        holiday = Holiday(date=day, label=label, recurring=True, created_by=created_by)
        db.session.add(holiday)
        added.append(holiday)

    db.session.commit()
    logger.info("Generated holidays for %s: %d added, %d skipped", year, len(added), len(skipped))
    return added, skipped
