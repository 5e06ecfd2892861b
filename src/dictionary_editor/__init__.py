"""dictionary-editor: editorial workflow engine for a multilingual dictionary."""

__version__ = "0.1.0"

from .actor import Principal as Principal, resolve_actor as resolve_actor
from .config import (
    EditorConfig as EditorConfig,
    LanguageSeed as LanguageSeed,
    load_config as load_config,
    seed_languages as seed_languages,
)
from .editor import DictionaryEditor as DictionaryEditor
from .exceptions import (
    ConfigError as ConfigError,
    ConflictError as ConflictError,
    DatabaseError as DatabaseError,
    DictionaryEditorError as DictionaryEditorError,
    EntityNotFoundError as EntityNotFoundError,
    InvalidTransitionError as InvalidTransitionError,
    StaleVersionError as StaleVersionError,
    ValidationError as ValidationError,
)
from .models import (
    AuditEvent as AuditEvent,
    EditorialStatus as EditorialStatus,
    EntityType as EntityType,
    LanguageModel as LanguageModel,
    LemmaModel as LemmaModel,
    LemmaSentenceLinkModel as LemmaSentenceLinkModel,
    LinkType as LinkType,
    MeaningModel as MeaningModel,
    OwnerType as OwnerType,
    Page as Page,
    PronunciationModel as PronunciationModel,
    SurfaceFormModel as SurfaceFormModel,
    UsageSentenceModel as UsageSentenceModel,
)
from .workflow import (
    TransitionDecision as TransitionDecision,
    check_transition as check_transition,
    require_transition as require_transition,
)
