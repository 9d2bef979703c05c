"""Camera and microphone samplers."""
from .mock import MockConfig, MockMediaProvider, MockStream, is_mock_enabled
from .provider import DeviceMediaProvider, create_provider
from .signal import FrequencyAnalyser, mean_magnitude, mean_red_channel
from .stream import (
	MediaProvider,
	MediaStream,
	Sample,
	StreamKind,
	open_stream_with_fallback,
	sample_once,
)

__all__ = [
	"Sample",
	"StreamKind",
	"MediaStream",
	"MediaProvider",
	"open_stream_with_fallback",
	"sample_once",
	"DeviceMediaProvider",
	"create_provider",
	# Signal reductions
	"mean_red_channel",
	"FrequencyAnalyser",
	"mean_magnitude",
	# Mock
	"MockConfig",
	"MockMediaProvider",
	"MockStream",
	"is_mock_enabled",
]
