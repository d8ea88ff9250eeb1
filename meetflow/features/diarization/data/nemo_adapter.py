# File: meetflow/features/diarization/data/nemo_adapter.py
import json
import logging
import tempfile
from pathlib import Path
from typing import Optional

import omegaconf

from meetflow.core.config.settings import settings
from meetflow.core.model_lifecycle.orchestrator import ModelOrchestrator
from meetflow.core.model_lifecycle.types import ModelType
from ..domain.interfaces import IDiarizer
from ..domain.models import DiarizationResult
from .rttm import parse_rttm

logger = logging.getLogger(__name__)


class NemoDiarizer(IDiarizer):
    """
    Speaker diarization with the NVIDIA NeMo clustering diarizer (MarbleNet VAD + TitaNet embeddings).

    ClusteringDiarizer reads its input manifest and output dir from its config, so one
    instance is built per recording. The lease keeps Whisper and the LLM off the GPU meanwhile.
    """

    def __init__(self, model_name: Optional[str] = None, max_speakers: Optional[int] = None):
        self.orchestrator = ModelOrchestrator()
        self.device = settings.WHISPER_DEVICE
        self.model_name = model_name or settings.NEMO_DIAR_MODEL
        self.max_speakers = max_speakers or settings.MAX_SPEAKERS

    def identify_speakers(self, audio_path: Path, num_speakers: Optional[int] = None) -> DiarizationResult:
        audio_path = Path(audio_path)
        logger.info(f"Orchestrating NeMo Diarization for: {audio_path}")

        with tempfile.TemporaryDirectory(prefix="diar-") as work_dir:
            out_dir = Path(work_dir)

            # 1. Single-entry manifest
            manifest_path = out_dir / "manifest.json"
            manifest_path.write_text(json.dumps({
                "audio_filepath": str(audio_path),
                "offset": 0,
                "duration": None,
                "label": "infer",
                "text": "-",
                "num_speakers": num_speakers,
                "rttm_filepath": None,
                "uem_filepath": None,
            }) + "\n")

            cfg = self._build_config(manifest_path, out_dir, num_speakers)

            # 2. Run inference under the GPU lease
            with self.orchestrator.lease(ModelType.NEMO_DIARIZATION, self._load) as diarizer_cls:
                diarizer = diarizer_cls(cfg=cfg).to(self.device)
                diarizer.diarize()
                del diarizer

            # 3. Read the predicted speaker turns
            rttm_path = out_dir / "pred_rttms" / f"{audio_path.stem}.rttm"
            if not rttm_path.exists():
                raise RuntimeError(f"NeMo produced no RTTM for {audio_path.name}")
            segments = parse_rttm(rttm_path.read_text())

        labels = {s.speaker_label for s in segments}
        logger.info(f"Diarization found {len(labels)} speaker(s) in {len(segments)} turn(s)")
        return DiarizationResult(source_file=str(audio_path), num_speakers=len(labels), segments=segments)

    @staticmethod
    def _load():
        # noinspection PyPackageRequirements
        from nemo.collections.asr.models import ClusteringDiarizer
        return ClusteringDiarizer

    def _build_config(self, manifest_path: Path, out_dir: Path, num_speakers: Optional[int]):
        return omegaconf.OmegaConf.create({
            'name': 'ClusteringDiarizer',
            'num_workers': 0,
            'sample_rate': 16000,
            'batch_size': 64,
            'device': self.device,
            'verbose': False,
            'diarizer': {
                'manifest_filepath': str(manifest_path),
                'out_dir': str(out_dir),
                'oracle_vad': False,
                'collar': 0.25,
                'ignore_overlap': True,
                'vad': {
                    'model_path': settings.NEMO_VAD_MODEL,
                    'external_vad_manifest': None,
                    'parameters': {
                        'window_length_in_sec': 0.63,
                        'shift_length_in_sec': 0.08,
                        'smoothing': False,
                        'overlap': 0.5,
                        'onset': 0.8,
                        'offset': 0.6,
                        'pad_onset': 0.05,
                        'pad_offset': -0.1,
                        'min_duration_on': 0.2,
                        'min_duration_off': 0.2,
                        'filter_speech_first': True
                    }
                },
                'speaker_embeddings': {
                    'model_path': self.model_name,
                    'parameters': {
                        'window_length_in_sec': [1.5, 1.25, 1.0, 0.75, 0.5],
                        'shift_length_in_sec': [0.75, 0.625, 0.5, 0.375, 0.25],
                        'multiscale_weights': [1, 1, 1, 1, 1],
                        'save_embeddings': False
                    }
                },
                'clustering': {
                    'parameters': {
                        'oracle_num_speakers': num_speakers is not None,
                        'max_num_speakers': num_speakers or self.max_speakers,
                        'enhanced_count_thres': 80,
                        'max_rp_threshold': 0.25,
                        'sparse_search_volume': 30,
                        'maj_vote_spk_count': False
                    }
                }
            }
        })
