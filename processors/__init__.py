"""
Subtitle processing modules.

This package contains the processors that turn tracks into corrected SRT files:
- OCR correction rules and multi-pass correction
- SUP to SRT OCR pipeline
- Extraction pipeline coordinator
- Batch queue of video files and batch correction of SRT files
"""

from .correction_rules import CorrectionRule, CorrectionRuleEngine, DEFAULT_RULES
from .multipass_correction import CorrectionMode, MultiPassCorrectionEngine, MultiPassResult
from .ocr_pipeline import OcrResult, SupOcrPipeline
from .extraction_coordinator import ExtractionCoordinator, ExtractionResult, PipelineEvent, PipelineState
from .batch_queue import BatchItem, BatchQueueManager, BatchStatus, BatchSummary
from .batch_processor import BatchCorrectionProcessor

__all__ = [
    'CorrectionRule',
    'CorrectionRuleEngine',
    'DEFAULT_RULES',
    'CorrectionMode',
    'MultiPassCorrectionEngine',
    'MultiPassResult',
    'OcrResult',
    'SupOcrPipeline',
    'ExtractionCoordinator',
    'ExtractionResult',
    'PipelineEvent',
    'PipelineState',
    'BatchItem',
    'BatchQueueManager',
    'BatchStatus',
    'BatchSummary',
    'BatchCorrectionProcessor',
]
