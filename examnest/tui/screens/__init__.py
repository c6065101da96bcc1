from examnest.tui.screens.document_viewer import DocumentViewerScreen, open_document
from examnest.tui.screens.feedback import FeedbackScreen
from examnest.tui.screens.prompts import AlertScreen, ConfirmScreen, TextPromptScreen, report_result
from examnest.tui.screens.subject_files import SubjectFilesScreen
from examnest.tui.screens.taxonomy_editor import TaxonomyEditorScreen
from examnest.tui.screens.upload_form import UploadFormScreen

__all__ = [
    "AlertScreen",
    "ConfirmScreen",
    "DocumentViewerScreen",
    "FeedbackScreen",
    "SubjectFilesScreen",
    "TaxonomyEditorScreen",
    "TextPromptScreen",
    "UploadFormScreen",
    "open_document",
    "report_result",
]
