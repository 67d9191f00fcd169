"""
Wisdom atlas for browsing a knowledge base by spiritual domain

Every entry belongs to exactly one of eight domains: the first domain whose
keywords occur in the entry's question or themes. Entries that match no
domain are spread over the domains by a stable hash of their id, so the
atlas is the same on every run.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from corpus_loader import Corpus, CorpusEntry, Difficulty

logger = logging.getLogger('BhagavatamQA-Atlas')


@dataclass(frozen=True)
class Domain:
    id: str
    name: str
    name_hi: str
    icon: str
    keywords: Tuple[str, ...]

    def display_name(self, language: str = 'en') -> str:
        return self.name_hi if language == 'hi' else self.name


DOMAINS: List[Domain] = [
    Domain('self', 'Self-Knowledge', 'आत्म-ज्ञान', '🔮',
           ('self', 'soul', 'identity', 'consciousness', 'atma', 'jiva', 'आत्म')),
    Domain('devotion', 'Devotion', 'भक्ति', '💝',
           ('bhakti', 'devotion', 'love', 'worship', 'krishna', 'service', 'भक्ति', 'प्रेम', 'सेवा', 'कृष्ण')),
    Domain('dharma', 'Dharma', 'धर्म', '⚖️',
           ('dharma', 'duty', 'righteousness', 'ethics', 'moral', 'धर्म', 'कर्तव्य')),
    Domain('karma', 'Karma', 'कर्म', '🔄',
           ('karma', 'action', 'reaction', 'rebirth', 'destiny', 'कर्म', 'पुनर्जन्म')),
    Domain('detachment', 'Detachment', 'वैराग्य', '🪷',
           ('detachment', 'renunciation', 'desires', 'material', 'vairagya', 'वैराग्य', 'त्याग')),
    Domain('creation', 'Creation', 'सृष्टि', '🌌',
           ('creation', 'universe', 'cosmology', 'manifestation', 'prakriti', 'सृष्टि', 'ब्रह्मांड')),
    Domain('divine', 'Divine Nature', 'दिव्य स्वरूप', '✨',
           ('god', 'divine', 'supreme', 'lord', 'vishnu', 'avatar', 'भगवान', 'ईश्वर', 'विष्णु', 'अवतार')),
    Domain('liberation', 'Liberation', 'मोक्ष', '🕊️',
           ('liberation', 'moksha', 'enlightenment', 'freedom', 'transcendence', 'मोक्ष', 'मुक्ति')),
]

DOMAINS_BY_ID: Dict[str, Domain] = {domain.id: domain for domain in DOMAINS}

# Entries shown per difficulty tier when a domain is opened
TIER_LIMITS = {
    Difficulty.FOUNDATIONAL: 8,
    Difficulty.INTERMEDIATE: 4,
    Difficulty.ADVANCED: 4,
}


def classify_entry(entry: CorpusEntry) -> Domain:
    """First domain with a keyword in the question or themes"""
    text = f"{entry.question} {' '.join(entry.themes)}".lower()
    for domain in DOMAINS:
        if any(keyword in text for keyword in domain.keywords):
            return domain
    return DOMAINS[sum(map(ord, entry.id)) % len(DOMAINS)]


@dataclass
class DomainStats:
    domain: Domain
    entries: List[CorpusEntry] = field(default_factory=list)
    foundational: int = 0
    intermediate: int = 0
    advanced: int = 0
    cantos: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)

    def add(self, entry: CorpusEntry, canto: Optional[str]):
        self.entries.append(entry)
        if entry.difficulty is not None:
            tier = entry.difficulty.value
            setattr(self, tier, getattr(self, tier) + 1)
        if canto and canto not in self.cantos:
            self.cantos.append(canto)

    def questions(self, limits: Optional[Dict[Difficulty, int]] = None) -> List[CorpusEntry]:
        """Entries to show for this domain, foundational tier first, in corpus order"""
        limits = limits or TIER_LIMITS
        shown = []
        for difficulty, limit in limits.items():
            tier = [entry for entry in self.entries if entry.difficulty == difficulty]
            shown.extend(tier[:limit])
        return shown

    def to_dict(self, language: str = 'en') -> Dict:
        return {
            'domain': self.domain.id,
            'name': self.domain.display_name(language),
            'total': self.total,
            'foundational': self.foundational,
            'intermediate': self.intermediate,
            'advanced': self.advanced,
            'cantos': list(self.cantos)
        }


def build_atlas(corpus: Corpus) -> Dict[str, DomainStats]:
    """Group every entry of a corpus by domain, keeping the domain order"""
    atlas = {domain.id: DomainStats(domain) for domain in DOMAINS}
    for entry in corpus.entries:
        domain = classify_entry(entry)
        atlas[domain.id].add(entry, corpus.canto_name(entry.canto_id))

    totals = {domain_id: stats.total for domain_id, stats in atlas.items()}
    logger.debug(f"Atlas for '{corpus.language}': {totals}")
    return atlas


__all__ = ['Domain', 'DOMAINS', 'DOMAINS_BY_ID', 'DomainStats', 'build_atlas', 'classify_entry']
