"""Time-delayed email/SMS sequences and the enrollments that move through them."""

from .templates import TemplateType, TemplateLibrary, RenderedTemplate
from .sequences import Sequence, SequenceStep, SequenceCatalog, SequenceTrigger, Channel
from .enrollments import Enrollment, EnrollmentStatus, EnrollmentStore
from .tracker import EnrollmentTracker
from .scheduler import SequenceScheduler

__all__ = [
    'TemplateType',
    'TemplateLibrary',
    'RenderedTemplate',
    'Sequence',
    'SequenceStep',
    'SequenceCatalog',
    'SequenceTrigger',
    'Channel',
    'Enrollment',
    'EnrollmentStatus',
    'EnrollmentStore',
    'EnrollmentTracker',
    'SequenceScheduler',
]
