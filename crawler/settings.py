# Crawler settings for the narou sources

# Override the default request headers
DEFAULT_REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36"
    ),
}

# Age confirmation cookie, sent only to the age-gated domain
AGE_GATED_DOMAIN = "novel18.syosetu.com"
AGE_GATE_COOKIES = {"over18": "yes"}

# Hosts used to absolutize root-relative links
NCODE_BASE_URL = "https://ncode.syosetu.com"
NOVEL18_BASE_URL = "https://novel18.syosetu.com"

# Timeout for a whole request, in seconds
DOWNLOAD_TIMEOUT = 10

# Page structure
TITLE_SELECTOR = "h1"
AUTHOR_LINK_SELECTOR = ".p-novel__author a"
AUTHOR_SELECTOR = ".p-novel__author"
EPISODE_LIST_SELECTORS = [".p-eplist", ".p-eplist__sublist"]
EPISODE_LINK_SELECTOR = ".p-eplist__sublist a"
NEXT_PAGE_SELECTOR = ".c-pager__item--next"
NOVEL_BODY_SELECTOR = ".p-novel__body"
NOVEL_TEXT_SELECTOR = ".p-novel__body .p-novel__text"

UNKNOWN_AUTHOR = "不明な作者"
SECTION_SEPARATOR = "\n" + "*" * 48 + "\n"
