"""
AI image classification with Anthropic Claude.

Sends one image plus a classification prompt to the Messages API and turns
the reply into an AIAnalysisResult with every field present and every score
in the 0-10 range.

Usage
-----
    analyzer = ImageAnalyzer(api_key=config.ai.api_key, model=config.ai.model)
    result = analyzer.analyze(Path("media/originals/2026/10/abc.jpg"))
    result.instagram_score
"""

import base64
import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import anthropic

from mediavault.core.exceptions import AnalysisError, AnalysisResponseError
from mediavault.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "claude-3-haiku-20240307"
DEFAULT_MAX_TOKENS = 2000
DEFAULT_SCORE = 5.0

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

ANALYSIS_PROMPT = """Analyze this image for a media asset management system. Provide comprehensive classification for marketing use.

Provide a JSON response with:

1. subjects: Array of main subjects (people, animals, landscapes, objects, actions). Be specific.
2. style: Photography style (documentary, editorial, commercial, artistic, candid, posed, dramatic, minimalist)
3. mood: Emotional tone (energetic, peaceful, dramatic, intimate, celebratory, melancholic, powerful, serene)
4. composition: Main composition technique (rule-of-thirds, centered, symmetrical, leading-lines, frame-within-frame, diagonal, golden-ratio)
5. lighting: Lighting quality (golden-hour, harsh-midday, soft-diffused, dramatic-backlit, studio, natural-overcast, sunset, sunrise)
6. colors: Top 3-5 dominant colors (specific names like "burnt-orange", "deep-blue", "olive-green")
7. qualityScore: Technical quality 0-10 (sharpness, exposure, noise, focus)
8. description: 2-3 sentence detailed description of what you see

Platform Suitability (0-10):
- instagram: Square/4:5 crops, high visual impact, vibrant, eye-catching
- facebook: 16:9 format, storytelling, emotional connection, shareable
- linkedin: Professional context, 1.91:1 or 4:5, business-appropriate, polished
- websiteHero: 16:9 dramatic wide shots, attention-grabbing, above-fold impact
- websiteThumbnail: Clear subject, recognizable at small sizes, good contrast
- print: High resolution potential, timeless composition, fine detail

Use Case Recommendations:
- bestUseCases: Array of 3-5 SPECIFIC use cases this image is perfect for,
  e.g. "Website hero banner - Above-fold impact for ranch/farm business"
- notRecommendedFor: Array of 2-3 use cases this image is NOT suitable for and why,
  e.g. "Small thumbnail - Too much detail, loses impact when scaled down"
- cropRecommendations: How well this image crops to different aspect ratios (0-10):
  square (1:1), portrait (4:5 or 9:16), landscape (16:9 or 21:9)
- technicalNotes: One sentence about technical considerations.

Return ONLY valid JSON with this exact structure:
{
  "subjects": ["subject1", "subject2"],
  "style": "style-name",
  "mood": "mood-name",
  "composition": "composition-technique",
  "lighting": "lighting-type",
  "colors": ["color1", "color2", "color3"],
  "qualityScore": 8.5,
  "description": "Description here",
  "instagramScore": 9.0,
  "facebookScore": 8.5,
  "linkedinScore": 7.0,
  "websiteHeroScore": 9.5,
  "websiteThumbnailScore": 8.0,
  "printScore": 9.0,
  "bestUseCases": ["Instagram Stories - Lifestyle brand storytelling"],
  "notRecommendedFor": ["Small thumbnail - Too much detail"],
  "cropRecommendations": {"square": 8.5, "portrait": 7.0, "landscape": 9.5},
  "technicalNotes": "Excellent sharpness and dynamic range"
}"""


@dataclass
class CropRecommendations:
    square: float = DEFAULT_SCORE
    portrait: float = DEFAULT_SCORE
    landscape: float = DEFAULT_SCORE


@dataclass
class AIAnalysisResult:
    """Normalized classification of one image."""

    subjects: List[str] = field(default_factory=list)
    style: str = "unknown"
    mood: str = "neutral"
    composition: str = "unknown"
    lighting: str = "unknown"
    colors: List[str] = field(default_factory=list)
    quality_score: float = DEFAULT_SCORE
    description: str = ""
    instagram_score: float = DEFAULT_SCORE
    facebook_score: float = DEFAULT_SCORE
    linkedin_score: float = DEFAULT_SCORE
    website_hero_score: float = DEFAULT_SCORE
    website_thumbnail_score: float = DEFAULT_SCORE
    print_score: float = DEFAULT_SCORE
    best_use_cases: List[str] = field(default_factory=list)
    not_recommended_for: List[str] = field(default_factory=list)
    crop_recommendations: CropRecommendations = field(
        default_factory=CropRecommendations
    )
    technical_notes: str = "No technical notes available"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _score(value: Any) -> float:
    """Clamp to 0-10. Missing or non-numeric values get the default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_SCORE
    return float(max(0.0, min(10.0, value)))


def _text(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def _strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def parse_analysis_response(text: str) -> AIAnalysisResult:
    """
    Extract and normalize the JSON object in a model reply.

    Raises:
        AnalysisResponseError: If the reply has no parseable JSON object.
    """
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        logger.error("No JSON found in response", preview=(text or "")[:200])
        raise AnalysisResponseError("No valid JSON found in response")

    try:
        raw = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AnalysisResponseError(f"Invalid JSON in response: {e}") from e
    if not isinstance(raw, dict):
        raise AnalysisResponseError("No valid JSON found in response")

    crops = raw.get("cropRecommendations")
    if not isinstance(crops, dict):
        crops = {}

    return AIAnalysisResult(
        subjects=_strings(raw.get("subjects")),
        style=_text(raw.get("style"), "unknown"),
        mood=_text(raw.get("mood"), "neutral"),
        composition=_text(raw.get("composition"), "unknown"),
        lighting=_text(raw.get("lighting"), "unknown"),
        colors=_strings(raw.get("colors")),
        quality_score=_score(raw.get("qualityScore")),
        description=_text(raw.get("description"), ""),
        instagram_score=_score(raw.get("instagramScore")),
        facebook_score=_score(raw.get("facebookScore")),
        linkedin_score=_score(raw.get("linkedinScore")),
        website_hero_score=_score(raw.get("websiteHeroScore")),
        website_thumbnail_score=_score(raw.get("websiteThumbnailScore")),
        print_score=_score(raw.get("printScore")),
        best_use_cases=_strings(raw.get("bestUseCases")),
        not_recommended_for=_strings(raw.get("notRecommendedFor")),
        crop_recommendations=CropRecommendations(
            square=_score(crops.get("square")),
            portrait=_score(crops.get("portrait")),
            landscape=_score(crops.get("landscape")),
        ),
        technical_notes=_text(
            raw.get("technicalNotes"), "No technical notes available"
        ),
    )


def media_type_for(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".png":
        return "image/png"
    if suffix == ".webp":
        return "image/webp"
    if suffix == ".gif":
        return "image/gif"
    return "image/jpeg"


class ImageAnalyzer:
    """
    Claude vision client for image classification.

    Requires an API key from config (ai.api_key) or ANTHROPIC_API_KEY.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Optional[Any] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            api_key: Anthropic API key
            model: Claude model name
            max_tokens: Reply token limit
            client: Pre-built client (tests pass a mock here)
        """
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = client

    @classmethod
    def from_config(cls, config: Any) -> "ImageAnalyzer":
        return cls(
            api_key=config.ai.api_key,
            model=config.ai.model,
            max_tokens=config.ai.max_tokens,
        )

    @property
    def client(self) -> Any:
        """Lazy-load Anthropic client."""
        if self._client is None:
            if not self.api_key:
                raise AnalysisError(
                    "ANTHROPIC_API_KEY not set. Set it in environment or config."
                )
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def is_available(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _build_params(self, image_data: bytes, media_type: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": base64.b64encode(image_data).decode("utf-8"),
                            },
                        },
                        {"type": "text", "text": ANALYSIS_PROMPT},
                    ],
                }
            ],
        }

    @staticmethod
    def _response_text(response: Any) -> str:
        output = ""
        for block in response.content:
            if getattr(block, "type", None) == "text":
                output += block.text
        return output

    def analyze(self, image_path: Path) -> AIAnalysisResult:
        """
        Classify one image. Blocking.

        Raises:
            AnalysisError: If the key is missing, the file cannot be read or
                the API call fails.
            AnalysisResponseError: If the reply has no usable JSON.
        """
        try:
            image_data = image_path.read_bytes()
        except OSError as e:
            raise AnalysisError(f"Cannot read image {image_path.name}: {e}") from e

        media_type = media_type_for(image_path)
        logger.info(
            "Sending image to Claude",
            image=image_path.name,
            size=len(image_data),
            media_type=media_type,
            model=self.model,
        )

        try:
            response = self.client.messages.create(
                **self._build_params(image_data, media_type)
            )
        except anthropic.APIError as e:
            raise AnalysisError(f"Claude request failed: {e}") from e

        return parse_analysis_response(self._response_text(response))
