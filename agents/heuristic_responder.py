from __future__ import annotations

import re
from typing import Dict, Iterable, List

from models.schemas import GenerationResult, Sentiment

_TURKISH_CHARS = re.compile(r"[çğıöşüÇĞİÖŞÜ]")
_TURKISH_WORDS = {"merhaba", "selam", "teşekkür", "randevu", "fiyat", "müsait", "iyi", "günler", "çok", "ve", "bir"}

NEGATIVE_TERMS = [
    "kötü",
    "berbat",
    "rezalet",
    "kaba",
    "ilgisiz",
    "memnun kalmadık",
    "memnun değilim",
    "hayal kırıklığı",
    "şikayet",
    "asla",
    "angry",
    "terrible",
    "awful",
    "rude",
    "unacceptable",
    "disappointed",
    "refund",
    "iade",
]
POSITIVE_TERMS = [
    "harika",
    "mükemmel",
    "teşekkür",
    "memnun kaldık",
    "çok memnun",
    "beğendik",
    "tavsiye ederim",
    "güler yüzlü",
    "great",
    "excellent",
    "thank you",
    "thanks",
    "amazing",
]
INTENT_TERMS: Dict[str, List[str]] = {
    "appointment": ["randevu", "müsait", "rezervasyon", "appointment", "booking", "book"],
    "pricing": ["fiyat", "ücret", "kaç para", "price", "pricing", "cost"],
    "greeting": ["merhaba", "selam", "iyi günler", "hello", "hi"],
}

_REPLIES_TR = {
    "appointment": (
        "Merhaba, randevu talebiniz için teşekkür ederiz. Size uygun gün ve saati paylaşırsanız "
        "müsaitlik durumumuzu hemen kontrol edelim."
    ),
    "pricing": (
        "Merhaba, ilginiz için teşekkür ederiz. Güncel fiyatlarımızı sizinle paylaşmaktan memnuniyet duyarız; "
        "hangi hizmetimizle ilgilendiğinizi belirtebilir misiniz?"
    ),
    "greeting": "Merhaba, bize ulaştığınız için teşekkür ederiz. Size nasıl yardımcı olabiliriz?",
    "complaint": (
        "Yaşadığınız olumsuz deneyim için çok üzgünüz. Konuyu hemen inceleyip size en kısa sürede dönüş yapacağız."
    ),
    "general": (
        "Merhaba, mesajınız için teşekkür ederiz. Sorunuzu ilgili ekibimize ilettik; size en kısa sürede dönüş yapacağız."
    ),
}
_REPLIES_EN = {
    "appointment": "Hello, thank you for your appointment request. Please share a day and time that suits you and we will check availability.",
    "pricing": "Hello, thank you for your interest. We would be glad to share our current prices; which service are you interested in?",
    "greeting": "Hello, thank you for reaching out. How can we help you?",
    "complaint": "We are very sorry about your experience. We are looking into it and will get back to you shortly.",
    "general": "Hello, thank you for your message. We have passed your question to our team and will get back to you shortly.",
}


def _has_term(lower: str, term: str) -> bool:
    if " " in term:
        return term in lower
    # Turkish is agglutinative: longer stems match with suffixes attached.
    suffix = "" if len(term) >= 4 else r"(?!\w)"
    return bool(re.search(rf"(?<!\w){re.escape(term)}{suffix}", lower))


def _count(lower: str, terms: Iterable[str]) -> int:
    return sum(1 for term in terms if _has_term(lower, term))


class HeuristicResponder:
    """Deterministic stand-in for the response-generation service.

    Used as the ``heuristic`` provider for local development and tests; the
    rules cover the Turkish and English traffic the channels receive.
    """

    def detect_language(self, text: str, locale: str) -> str:
        if _TURKISH_CHARS.search(text or ""):
            return "tr"
        words = set(re.findall(r"\w+", (text or "").lower()))
        if words & _TURKISH_WORDS:
            return "tr"
        if words and re.fullmatch(r"[\x00-\x7f]*", text or ""):
            return "en"
        return (locale or "tr").split("-")[0].lower()

    def analyze(self, text: str) -> Sentiment:
        lower = (text or "").lower()
        negative_hits = _count(lower, NEGATIVE_TERMS)
        positive_hits = _count(lower, POSITIVE_TERMS)
        if negative_hits > positive_hits:
            return Sentiment.NEGATIVE
        if positive_hits > negative_hits:
            return Sentiment.POSITIVE
        return Sentiment.NEUTRAL

    def intent(self, text: str, sentiment: Sentiment) -> str:
        lower = (text or "").lower()
        if sentiment == Sentiment.NEGATIVE:
            return "complaint"
        for intent, terms in INTENT_TERMS.items():
            if any(_has_term(lower, term) for term in terms):
                return intent
        return "general"

    def respond(self, text: str, locale: str, context: Dict[str, object] | None = None) -> GenerationResult:
        context = dict(context or {})
        language = self.detect_language(text, locale)
        rating = context.get("rating")
        if rating is not None:
            return self._review_reply(int(rating), str(context.get("author") or ""), language)
        sentiment = self.analyze(text)
        intent = self.intent(text, sentiment)
        replies = _REPLIES_TR if language == "tr" else _REPLIES_EN
        return GenerationResult(sentiment=sentiment, intent=intent, reply_text=replies[intent], language=language)

    def _review_reply(self, rating: int, author: str, language: str) -> GenerationResult:
        if language == "tr":
            salutation = f"Sayın {author}, " if author else ""
            if rating >= 4:
                body = (
                    "değerli yorumunuz ve verdiğiniz yüksek puan için çok teşekkür ederiz. "
                    "Sizi yeniden ağırlamaktan memnuniyet duyarız."
                )
                sentiment, intent = Sentiment.POSITIVE, "praise"
            elif rating == 3:
                body = "yorumunuz için teşekkür ederiz. Deneyiminizi daha iyi hale getirmek için çalışmaya devam edeceğiz."
                sentiment, intent = Sentiment.NEUTRAL, "feedback"
            else:
                body = (
                    "yaşadığınız deneyim için içtenlikle özür dileriz. Geri bildiriminizi ekibimizle değerlendiriyoruz; "
                    "konuyu çözebilmek için sizinle iletişime geçmek isteriz."
                )
                sentiment, intent = Sentiment.NEGATIVE, "complaint"
            text = salutation + body if salutation else body[0].upper() + body[1:]
        else:
            salutation = f"Dear {author}, " if author else ""
            if rating >= 4:
                body = "thank you very much for your kind review. We look forward to welcoming you again."
                sentiment, intent = Sentiment.POSITIVE, "praise"
            elif rating == 3:
                body = "thank you for your feedback. We will keep working to improve your experience."
                sentiment, intent = Sentiment.NEUTRAL, "feedback"
            else:
                body = "we sincerely apologise for your experience. Our team is reviewing your feedback and would like to contact you to resolve it."
                sentiment, intent = Sentiment.NEGATIVE, "complaint"
            text = salutation + body if salutation else body[0].upper() + body[1:]
        return GenerationResult(sentiment=sentiment, intent=intent, reply_text=text, language=language)
