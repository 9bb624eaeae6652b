import os
import sys
sys.path.insert(0, os.path.abspath('../..'))  # points to repo root

# spots_service.main creates its tables on import; keep autodoc off the real database
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Sphinx configuration for the Study Spots service API reference.
# See https://www.sphinx-doc.org/en/master/usage/configuration.html

project = 'Rate My Study Spots'
copyright = '2025, Study Spots contributors'
author = 'Study Spots contributors'
release = '1.0.0'

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
]

# spots_service docstrings use numpy sections (Parameters / Returns / Raises)
napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_use_rtype = False

autodoc_member_order = "bysource"
autodoc_typehints = "description"
autodoc_default_options = {
    "members": True,
    "show-inheritance": True,
}

templates_path = ['_templates']
exclude_patterns = ['_build']

html_theme = 'alabaster'
html_static_path = []
