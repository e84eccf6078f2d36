"""Metadata for batch_analyzer."""

__all__ = [
    "__title__",
    "__version__",
    "__description__",
    "__credits__",
    "__requires_python__",
]

__title__ = "batch_analyzer"
__version__ = "0.1.0"
__description__ = (
    "Batch Lighthouse audits into timestamped run directories and browse their history."
)
__credits__ = [
    {"name": "Matthew D. Martin", "email": "matthewdeanmartin@users.noreply.github.com"}
]
__requires_python__ = ">=3.9"
