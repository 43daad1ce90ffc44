"""HTML to Aozora Bunko style plain text conversion."""
import re
import logging
from typing import Optional
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict, field_validator

from normalizer import delete_tag, restore_html_entity

logger = logging.getLogger(__name__)


DEFAULT_ILLUSTRATION_PATTERN = r'<img.+?src="(?P<src>.+?)".*?>'

BR_PATTERN = re.compile(r'<br\b[^>]*>', re.IGNORECASE)
NEWLINES_PATTERN = re.compile(r'[\r\n]+')
P_CLOSE_PATTERN = re.compile(r'\n?</p\s*>', re.IGNORECASE)
RUBY_PATTERN = re.compile(r'<ruby\b[^>]*>(.+?)</ruby\s*>', re.IGNORECASE | re.DOTALL)
RT_PATTERN = re.compile(r'<rt\b[^>]*>', re.IGNORECASE)
RP_PATTERN = re.compile(r'<rp\b[^>]*>', re.IGNORECASE)
EMPHASIS_PATTERN = re.compile(
    r'<em class="emphasisDots">(.+?)</em>',
    re.IGNORECASE | re.DOTALL,
)

# Ruby bases made only of these need no leading ｜
KANJI_ONLY_PATTERN = re.compile(r"^[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff々仝〆〇ヶ]+$")

# tag name -> (opening annotation, closing annotation)
DECORATION_TAGS = {
    'b': ('［＃太字］', '［＃太字終わり］'),
    'i': ('［＃斜体］', '［＃斜体終わり］'),
    's': ('［＃取消線］', '［＃取消線終わり］'),
}


class ConversionConfig(BaseModel):
    """
    Settings for one AozoraConverter.

    Frozen: use with_illustration() or model_validate() to derive a
    changed copy. An illustration pattern that does not compile is
    rejected at construction.
    """

    model_config = ConfigDict(frozen=True)

    strip_decoration_tags: bool = False
    illustration_base_url: str = ""
    illustration_pattern: str = DEFAULT_ILLUSTRATION_PATTERN
    omit_redundant_ruby_bar: bool = False

    @field_validator('illustration_pattern')
    @classmethod
    def pattern_must_compile(cls, value: str) -> str:
        if not value:
            return DEFAULT_ILLUSTRATION_PATTERN
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid illustration pattern: {e}") from e
        return value

    def with_illustration(
        self,
        base_url: str,
        pattern: Optional[str] = None,
    ) -> "ConversionConfig":
        """Return a copy with new illustration settings; self is unchanged."""
        return ConversionConfig.model_validate({
            'strip_decoration_tags': self.strip_decoration_tags,
            'illustration_base_url': base_url,
            'illustration_pattern': pattern or self.illustration_pattern,
            'omit_redundant_ruby_bar': self.omit_redundant_ruby_bar,
        })


class AozoraConverter:
    """
    Rewrite narou HTML fragments into Aozora Bunko annotated text.

    The passes of to_aozora() run in a fixed order; later passes rely on
    the newline normalization done by the earlier ones. No pass raises on
    malformed markup.
    """

    def __init__(self, config: Optional[ConversionConfig] = None):
        self.config = config or ConversionConfig()
        self._illustration_re = re.compile(self.config.illustration_pattern)

    def to_aozora(self, text: str, pre_html: bool = False) -> str:
        """
        Convert HTML to Aozora style text.

        Args:
            text: HTML fragment
            pre_html: Input is already line-formatted; keep literal newlines
                and leave <br> handling to the tag stripper

        Returns:
            Plain text with Aozora annotations
        """
        if not pre_html:
            text = self.br_to_aozora(text)

        text = self.p_to_aozora(text)
        text = self.ruby_to_aozora(text)

        if not self.config.strip_decoration_tags:
            text = self.b_to_aozora(text)
            text = self.i_to_aozora(text)
            text = self.s_to_aozora(text)

        text = self.img_to_aozora(text)
        text = self.em_to_sesame(text)
        text = delete_tag(text)
        return restore_html_entity(text)

    def br_to_aozora(self, text: str) -> str:
        """Turn <br> tags into newlines after dropping literal ones."""
        text = NEWLINES_PATTERN.sub('', text)
        return BR_PATTERN.sub('\n', text)

    def p_to_aozora(self, text: str) -> str:
        return P_CLOSE_PATTERN.sub('\n', text)

    def ruby_to_aozora(self, text: str) -> str:
        """Rewrite <ruby> spans as ｜base《gloss》."""
        # Literal 《》 would be read as ruby notation
        text = text.replace('《', '≪').replace('》', '≫')
        return RUBY_PATTERN.sub(self._ruby_replacement, text)

    def _ruby_replacement(self, match: re.Match) -> str:
        parts = RT_PATTERN.split(match.group(1), maxsplit=1)
        if len(parts) < 2:
            return delete_tag(parts[0])

        base = delete_tag(RP_PATTERN.split(parts[0], maxsplit=1)[0])
        gloss = delete_tag(RP_PATTERN.split(parts[1], maxsplit=1)[0])
        return self.format_ruby(base, gloss)

    def format_ruby(self, base: str, gloss: str) -> str:
        if self.config.omit_redundant_ruby_bar and KANJI_ONLY_PATTERN.match(base):
            return f"{base}《{gloss}》"
        return f"｜{base}《{gloss}》"

    def b_to_aozora(self, text: str) -> str:
        return self._decoration_to_aozora(text, 'b')

    def i_to_aozora(self, text: str) -> str:
        return self._decoration_to_aozora(text, 'i')

    def s_to_aozora(self, text: str) -> str:
        return self._decoration_to_aozora(text, 's')

    def _decoration_to_aozora(self, text: str, tag: str) -> str:
        # Opening and closing tags are rewritten independently, so
        # unbalanced markup still yields one annotation per tag.
        opening, closing = DECORATION_TAGS[tag]
        text = re.sub(rf'<{tag}>', opening, text, flags=re.IGNORECASE)
        return re.sub(rf'</{tag}>', closing, text, flags=re.IGNORECASE)

    def img_to_aozora(self, text: str) -> str:
        """Replace illustration tags with ［＃挿絵（src）入る］."""
        return self._illustration_re.sub(self._illustration_replacement, text)

    def _illustration_replacement(self, match: re.Match) -> str:
        if 'src' in match.re.groupindex:
            src = match.group('src')
        elif match.re.groups >= 1:
            src = match.group(1)
        else:
            return match.group(0)

        if src is None:
            return match.group(0)

        return f"［＃挿絵（{self.resolve_illustration(src)}）入る］"

    def resolve_illustration(self, src: str) -> str:
        base_url = self.config.illustration_base_url
        if not base_url:
            return src
        try:
            return urljoin(base_url, src)
        except ValueError as e:
            logger.debug(f"Keeping unresolved illustration source {src!r}: {e}")
            return src

    def em_to_sesame(self, text: str) -> str:
        return EMPHASIS_PATTERN.sub(r'［＃傍点］\1［＃傍点終わり］', text)
