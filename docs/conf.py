import covblocks

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.mathjax",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx.ext.doctest",
]

master_doc = "index"
source_suffix = {".rst": "restructuredtext"}
templates_path = ["_templates"]

# General information about the project.
project = "covblocks"
copyright = "2024, The covblocks developers"
version = covblocks.__version__
release = covblocks.__version__

exclude_patterns = ["_build"]
html_theme = "sphinx_book_theme"
html_title = "covblocks"
html_static_path = ["_static"]
html_show_sourcelink = False
html_theme_options = {"path_to_docs": "docs"}

autodoc_type_aliases = {
    "JAXArray": "covblocks.helpers.JAXArray",
    "Array": "covblocks.helpers.Array",
    "BlockGrid": "covblocks.block.factorization.BlockGrid",
}
