"""
Quoting option catalog: the fixed choices offered in the options form.

The model prices whatever it is given; these lists only constrain what the
front end may send and what the defaults are for a fresh session.
"""

MATERIALS = (
    "Aluminum 6061-T6",
    "Stainless Steel 304",
    "ABS Plastic",
    "Titanium Grade 5",
    "PEEK",
)

FINISHES = (
    "As Machined",
    "Bead Blast",
    "Anodized (Clear)",
    "Anodized (Black)",
    "Polished",
)

LEAD_TIMES = (
    "Standard (2 Weeks)",
    "Expedited (1 Week)",
    "Rush (3 Days)",
)

DEFAULT_QUANTITY = 1
DEFAULT_MATERIAL = "Aluminum 6061-T6"
DEFAULT_FINISH = "As Machined"
DEFAULT_LEAD_TIME = "Standard (2 Weeks)"

# CAD / mesh formats accepted by the upload control
ALLOWED_EXTENSIONS = {"stl", "step", "stp", "iges", "igs", "obj", "3mf"}


def get_extension(filename: str) -> str:
    """Extract the lowercase file extension, or "" if there is none."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()
