"""Decides what to do with a mention: mint, ask, help or encourage."""

import base64
import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .content_extractor import extract_image, preview_image_url
from .llm_handler import AdvisoryError, AdvisoryMessage, AdvisoryModel, sanitize_text
from .neynar_client import Cast, NeynarClient
from .orm.image_analysis import ImageAnalysis
from .pattern_matcher import (
    extract_explicit_name,
    extract_explicit_symbol,
    generate_symbol_from_name,
    is_post_mint_request,
    sanitize_name,
    sanitize_symbol,
)
from .services.conversation_service import ConversationService, UserContext
from .services.image_analysis_service import ImageAnalysisService

logger = logging.getLogger(__name__)

ActionType = Literal["create_token", "create_post_token", "clarify", "help", "encourage", "celebrate"]
CREATION_ACTIONS = ("create_token", "create_post_token")

# Words that make the rule-only path create a token when an image is attached
CREATE_KEYWORDS = ("coin", "token")

HELP_MESSAGE = "hi! share an image to create a token 🎨→🪙"
ENCOURAGE_MESSAGE = "beautiful work! 🎨 want to turn this into a token?"
CREATE_MESSAGE = "creating your token now! 🎨→🪙"
POST_TOKEN_MESSAGE = "turning this cast into a token! 🎨→🪙"

DEFAULT_NAME = "Creative Vision"
DEFAULT_SYMBOL = "CREATE"
DEFAULT_DESCRIPTION = "A creative work"
POST_SYMBOL = "POST"

PLACEHOLDER_ANALYSIS = {
    "artistic_style": "digital art",
    "color_palette": ["vibrant"],
    "mood": "creative",
    "composition_notes": "balanced composition",
    "suggested_names": ["Creative Vision"],
    "suggested_symbols": ["VISION"],
    "artistic_elements": ["digital art"],
    "visual_description": "A creative digital work",
}

PERSONALITY_PROMPT = """You are Zoiner, a creative AI that helps artists turn their images into Zora coins on Farcaster.

PERSONALITY TRAITS:
- Creative catalyst who celebrates all forms of art
- Encouraging and supportive, never judgmental
- Uses artistic language and visual metaphors
- Catchphrase: "your creation is zoined!" for successful tokens
- Focus on artistic vision over technical details

DECISION FRAMEWORK:
1. If the user mentions you with an image: analyze the art and offer to tokenize it
2. If the user asks for a token: extract name/symbol or suggest them from the image
3. If the user needs help: give encouraging, art-focused guidance
4. If the intent is unclear: ask about their creative vision

RESPONSE FORMAT:
Respond only with JSON:
{
  "message": "your encouraging response text",
  "action": "create_token" | "clarify" | "help" | "encourage" | "celebrate",
  "suggested_name": "required when action is create_token",
  "suggested_symbol": "required when action is create_token",
  "metadata_description": "artistic description for token metadata"
}"""

ART_CRITIC_PROMPT = "You are an AI art critic helping with token creation."

IMAGE_ANALYSIS_PROMPT = """Analyze this image for token creation. Respond with JSON:
{
  "artistic_style": "describe the art style",
  "color_palette": ["dominant", "colors"],
  "mood": "emotional tone",
  "composition_notes": "visual details",
  "suggested_names": ["Creative", "Names"],
  "suggested_symbols": ["SYM", "BOL"],
  "artistic_elements": ["key", "elements"],
  "visual_description": "detailed description"
}"""

POST_NAMING_PROMPT = "you create token names from social content. be concise and cool."

POST_NAMING_TEMPLATE = """analyze this cast and create a token name:

"{text}" by {author}

make it meaningful but not cringe. capture the vibe.

respond only with:
{{
  "name": "token name (2-10 words max)",
  "symbol": "symbol (3-10 letters)",
  "description": "why this cast matters (1-2 sentences)"
}}

examples:
- "gm everyone" -> {{"name": "GM Energy", "symbol": "GM", "description": "daily dose of good morning vibes"}}
- "building something cool" -> {{"name": "Building Cool", "symbol": "BUILD", "description": "the hustle of creating something new"}}
- "coffee time" -> {{"name": "Coffee Time", "symbol": "BREW", "description": "fuel for the grind"}}"""

_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class MintingDecision(BaseModel):
    """Structured decision, either decoded from the advisory model or built by fallback rules."""

    model_config = ConfigDict(strict=True, extra="ignore")

    action: ActionType
    message: str = Field(min_length=1)
    suggested_name: Optional[str] = None
    suggested_symbol: Optional[str] = None
    metadata_description: Optional[str] = None

    @model_validator(mode="after")
    def _creation_needs_names(self):
        if self.action in CREATION_ACTIONS and not (self.suggested_name and self.suggested_symbol):
            raise ValueError(f"{self.action} requires suggested_name and suggested_symbol")
        return self

    @property
    def is_creation(self) -> bool:
        return self.action in CREATION_ACTIONS


class ImageAnalysisResult(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")

    artistic_style: str
    color_palette: list[str]
    mood: str
    composition_notes: str
    suggested_names: list[str]
    suggested_symbols: list[str]
    artistic_elements: list[str]
    visual_description: str


class PostTokenInfo(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")

    name: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    description: str


@dataclass
class DecisionOutcome:
    """A decision plus everything the minting step needs to act on it."""

    decision: MintingDecision
    image_url: Optional[str]
    target_cast: Cast
    analysis: Optional[ImageAnalysis] = None


def json_payload(text: str) -> str:
    """Pull the JSON object out of a model reply, tolerating code fences and chatter."""
    fenced = _CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object in response")
    return text[start : end + 1]


def decode(schema: type[BaseModel], text: str):
    """Strictly decode advisory output into ``schema``.

    Raises:
        ValueError: If no JSON object is found or it does not match the schema.
    """
    return schema.model_validate_json(json_payload(text))


def infer_image_mime(url: str) -> str:
    lowered = url.lower()
    if ".png" in lowered:
        return "image/png"
    if ".gif" in lowered:
        return "image/gif"
    if ".webp" in lowered:
        return "image/webp"
    return "image/jpeg"


def post_description(cast: Cast) -> str:
    text = cast.text[:100]
    suffix = "..." if len(cast.text) > 100 else ""
    return f'Tokenized post: "{text}{suffix}"'


def placeholder_analysis(image_url: str) -> ImageAnalysis:
    """Unsaved generic analysis used when the real one cannot be produced."""
    fields = {k: list(v) if isinstance(v, list) else v for k, v in PLACEHOLDER_ANALYSIS.items()}
    return ImageAnalysis(image_url=image_url, analysis_result="", **fields)


def build_context_text(
    text: str,
    analysis: Optional[ImageAnalysis],
    explicit_name: Optional[str],
    user_context: UserContext,
) -> str:
    lines = [f'User message: "{text}"']
    if analysis is not None:
        lines.append(f"Image: {analysis.artistic_style}, {analysis.mood}")
        lines.append(f"Suggested names: {', '.join(analysis.suggested_names or [])}")
    if explicit_name:
        lines.append(f'The user named the token "{explicit_name}"; use exactly that name.')
    lines.append(f"User has created {user_context.creation_count} tokens")
    if user_context.last_action:
        lines.append(f"Recent: {user_context.last_action}")
    return "\n".join(lines)


class DecisionEngine:
    """Turns a mention into a MintingDecision.

    With an advisory model the decision is suggested by the model and then
    corrected by explicit user input; without one (or when the model fails)
    deterministic rules decide.
    """

    def __init__(
        self,
        neynar: NeynarClient,
        analyses: ImageAnalysisService,
        conversations: ConversationService,
        advisory: AdvisoryModel | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.neynar = neynar
        self.analyses = analyses
        self.conversations = conversations
        self.advisory = advisory
        self.timeout = timeout
        self._transport = transport

    async def decide(self, cast: Cast) -> DecisionOutcome:
        if is_post_mint_request(cast.text):
            return await self.decide_post(cast)
        return await self.decide_regular(cast)

    # Post path

    async def decide_post(self, cast: Cast) -> DecisionOutcome:
        """Tokenize the referenced post (the parent when this is a reply)."""
        target = cast
        if cast.parent_hash:
            parent = await self.neynar.get_cast_by_hash(cast.parent_hash)
            if parent is not None:
                logger.info("Tokenizing parent cast %s by @%s", parent.hash, parent.author.username)
                target = parent
            else:
                logger.warning("Parent cast %s unavailable, tokenizing the reply itself", cast.parent_hash)

        info = await self.name_post(target)
        decision = MintingDecision(
            action="create_post_token",
            message=POST_TOKEN_MESSAGE,
            suggested_name=info.name,
            suggested_symbol=info.symbol,
            metadata_description=info.description,
        )
        return DecisionOutcome(decision=decision, image_url=preview_image_url(target), target_cast=target)

    async def name_post(self, target: Cast) -> PostTokenInfo:
        explicit_name = extract_explicit_name(target.text)
        if explicit_name:
            symbol = extract_explicit_symbol(target.text) or generate_symbol_from_name(explicit_name)
            return PostTokenInfo(
                name=explicit_name, symbol=symbol or POST_SYMBOL, description=post_description(target)
            )

        fallback = PostTokenInfo(
            name=sanitize_name(f"{target.author.name} Post") or "Post",
            symbol=POST_SYMBOL,
            description=post_description(target),
        )
        if self.advisory is None:
            return fallback

        prompt = POST_NAMING_TEMPLATE.format(text=sanitize_text(target.text), author=target.author.name)
        try:
            response = await self.advisory.complete(POST_NAMING_PROMPT, [AdvisoryMessage(prompt)])
            info = decode(PostTokenInfo, response)
        except (AdvisoryError, ValueError) as e:
            logger.warning("Post naming fell back to defaults: %s", e)
            return fallback

        name = sanitize_name(info.name)
        if not name:
            return fallback
        return PostTokenInfo(
            name=name,
            symbol=sanitize_symbol(info.symbol) or generate_symbol_from_name(name) or POST_SYMBOL,
            description=info.description or fallback.description,
        )

    # Regular path

    async def decide_regular(self, cast: Cast) -> DecisionOutcome:
        image_url = extract_image(cast)
        analysis = await self.analyze_image(image_url) if image_url else None
        explicit_name = extract_explicit_name(cast.text)
        explicit_symbol = extract_explicit_symbol(cast.text)

        decision = None
        if self.advisory is not None:
            user_context = await self.conversations.get_user_context(cast.author.fid)
            context_text = build_context_text(
                sanitize_text(cast.text), analysis, explicit_name, user_context
            )
            try:
                response = await self.advisory.complete(
                    PERSONALITY_PROMPT, [AdvisoryMessage(context_text)]
                )
                decision = decode(MintingDecision, response)
            except (AdvisoryError, ValueError) as e:
                logger.warning("Advisory decision unavailable, using rules: %s", e)

        if decision is None:
            decision = self.fallback_decision(cast.text, image_url, analysis, explicit_name, explicit_symbol)
        elif decision.is_creation:
            decision = self.apply_overrides(decision, explicit_name, explicit_symbol)

        if decision.is_creation and image_url is None:
            logger.info("Creation suggested for %s without an image, asking for one", cast.hash)
            decision = MintingDecision(action="help", message=HELP_MESSAGE)

        return DecisionOutcome(
            decision=decision, image_url=image_url, target_cast=cast, analysis=analysis
        )

    @staticmethod
    def apply_overrides(
        decision: MintingDecision, explicit_name: Optional[str], explicit_symbol: Optional[str]
    ) -> MintingDecision:
        """Explicit user naming wins over suggestions; the reply message is kept."""
        name = explicit_name or sanitize_name(decision.suggested_name or "") or DEFAULT_NAME
        if explicit_symbol:
            symbol = explicit_symbol
        elif explicit_name:
            symbol = generate_symbol_from_name(explicit_name)
        else:
            symbol = sanitize_symbol(decision.suggested_symbol or "")
        return decision.model_copy(
            update={
                "action": "create_token",
                "suggested_name": name,
                "suggested_symbol": symbol or generate_symbol_from_name(name) or DEFAULT_SYMBOL,
            }
        )

    @staticmethod
    def fallback_decision(
        text: str,
        image_url: Optional[str],
        analysis: Optional[ImageAnalysis],
        explicit_name: Optional[str],
        explicit_symbol: Optional[str],
    ) -> MintingDecision:
        if image_url is None:
            return MintingDecision(action="help", message=HELP_MESSAGE)

        lowered = text.lower()
        if not any(keyword in lowered for keyword in CREATE_KEYWORDS):
            return MintingDecision(action="encourage", message=ENCOURAGE_MESSAGE)

        names = list(analysis.suggested_names or []) if analysis is not None else []
        symbols = list(analysis.suggested_symbols or []) if analysis is not None else []
        name = explicit_name or sanitize_name(names[0] if names else "") or DEFAULT_NAME
        if explicit_symbol:
            symbol = explicit_symbol
        elif explicit_name:
            symbol = generate_symbol_from_name(explicit_name)
        else:
            symbol = sanitize_symbol(symbols[0] if symbols else "") or DEFAULT_SYMBOL

        return MintingDecision(
            action="create_token",
            message=CREATE_MESSAGE,
            suggested_name=name,
            suggested_symbol=symbol or DEFAULT_SYMBOL,
            metadata_description=(analysis.visual_description if analysis is not None else None)
            or DEFAULT_DESCRIPTION,
        )

    # Image analysis

    async def analyze_image(self, image_url: str) -> ImageAnalysis:
        """Return the analysis for an image, computing and caching it on a miss.

        A cache hit never calls the advisory model. Unparseable model output is
        stored as the generic placeholder; download or model failures return
        an unsaved placeholder so a later mention can try again.
        """
        cached = await self.analyses.get_by_url(image_url)
        if cached is not None:
            logger.info("Using cached image analysis for %s", image_url)
            return cached

        if self.advisory is None:
            return placeholder_analysis(image_url)

        try:
            image_base64 = await self._download_image(image_url)
        except httpx.HTTPError as e:
            logger.warning("Could not download %s: %s", image_url, e)
            return placeholder_analysis(image_url)

        message = AdvisoryMessage(
            IMAGE_ANALYSIS_PROMPT, image_base64=image_base64, image_mime=infer_image_mime(image_url)
        )
        try:
            raw = await self.advisory.complete(ART_CRITIC_PROMPT, [message])
        except AdvisoryError as e:
            logger.warning("Image analysis failed for %s: %s", image_url, e)
            return placeholder_analysis(image_url)

        try:
            parsed = decode(ImageAnalysisResult, raw).model_dump()
        except ValueError:
            logger.warning("Unparseable image analysis for %s, storing placeholder", image_url)
            parsed = PLACEHOLDER_ANALYSIS

        return await self.analyses.store(image_url, raw, parsed)

    async def _download_image(self, image_url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport, follow_redirects=True
        ) as client:
            response = await client.get(image_url)
            response.raise_for_status()
            return base64.b64encode(response.content).decode("ascii")
