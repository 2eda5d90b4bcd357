"""Phrase-to-nickname table, version 3.0.0.

Rows are ``(key, pattern, replacement)``.  Patterns are compiled
case-insensitively.  Row order is match priority: when two rows match
overlapping text, the earlier row wins.
"""

from __future__ import annotations

MAPPINGS_VERSION = "3.0.0"

MAPPINGS: tuple[tuple[str, str, str], ...] = (
    # Politicians
    ("isis", r"\b(ISIS|ISIL|Islamic State)\b", "Evil Losers"),
    (
        "hillary",
        r"\b(Hillary Clinton|Hillary Rodham Clinton|Mrs\. Clinton)\b",
        "Crooked Hillary",
    ),
    ("cruz", r"\bTed Cruz\b", "Lyin' Ted"),
    ("marco", r"\b(Marco Rubio|Rubio)\b", "Little Marco"),
    ("jeb", r"\b(Jeb Bush|Jeb)\b", "Low Energy Jeb"),
    ("warren", r"\bElizabeth Warren\b", "Goofy Pocahontas"),
    ("lamb", r"\bConor Lamb\b", "Lamb the Sham"),
    ("bannon", r"\bSteve Bannon\b", "Sloppy Steve"),
    ("durbin", r"\bDick Durbin\b", "Dicky Durbin"),
    ("feinstein", r"\bDianne Feinstein\b", "Sneaky Dianne Feinstein"),
    ("flake", r"\bJeff Flake\b", "Jeff Flakey"),
    ("franken", r"\bAl Franken\b", "Al Frankenstein"),
    ("corker", r"\bBob Corker\b", "Liddle' Bob Corker"),
    ("kasich", r"\bJohn Kasich\b", "1 for 38 Kasich"),
    ("assad", r"\bBashar (Hafez )?al-Assad\b", "Animal Assad"),
    # Media personalities
    ("kelly", r"\bMegyn Kelly\b", "Crazy Megyn"),
    ("scarborough", r"\bJoe Scarborough\b", "Psycho Joe"),
    ("mika", r"\bMika Brzezinski\b", "Dumb as a Rock Mika"),
    ("chucktodd", r"\bChuck Todd\b", "Sleepy Eyes Chuck Todd"),
    ("jimacosta", r"\bJim Acosta\b", "Crazy Jim Acosta"),
    # Misc
    ("coffee", r"\bcoffee\b", "covfefe"),
    # 2025 pack: politicians and prosecutors
    ("biden", r"\bJoe\s+Biden\b", "Sleepy Joe"),
    ("kamala", r"\bKamala\s+Harris\b", "Comrade Kamala"),
    ("desantis", r"\bRon\s+DeSantis\b", "Ron DeSanctimonious"),
    ("haley", r"\bNikki\s+Haley\b", "Birdbrain Nikki"),
    ("mcconnell", r"\bMitch\s+McConnell\b", "Old Crow Mitch"),
    ("chao", r"\bElaine\s+Chao\b", "Coco Chow"),
    ("schiff", r"\bAdam\s+Schiff\b", "Shifty Schiff"),
    ("pelosi", r"\bNancy\s+Pelosi\b", "Crazy Nancy"),
    ("schumer", r"\bChuck\s+Schumer\b", "Cryin' Chuck"),
    ("bloomberg", r"\b(Michael|Mike)\s+Bloomberg\b", "Mini Mike"),
    ("cheney", r"\bLiz\s+Cheney\b", "Lyin' Liz"),
    ("christie", r"\bChris\s+Christie\b", "Sloppy Chris"),
    ("bernie", r"\bBernie\s+Sanders\b", "Crazy Bernie"),
    ("jacksmith", r"\bJack\s+Smith\b", "Deranged Jack Smith"),
    ("bragg", r"\bAlvin\s+Bragg\b", "Fat Alvin"),
    ("letitiajames", r"\bLetitia\s+James\b", "Peekaboo"),
    # Foreign leaders
    ("kimjongun", r"\b(Kim Jong-un|Kim Jong Un)\b", "Little Rocket Man"),
    # Media organisations (news variants listed so they do not overlap)
    ("cnn", r"\bCNN\b", "Fake News CNN"),
    ("nyt", r"\b(NYT|New\s+York\s+Times)\b", "Failing New York Times"),
    ("washingtonpost", r"\b(Washington\s+Post|WaPo)\b", "Amazon Washington Post"),
    ("msnbc", r"\bMSNBC\b", "MSDNC"),
    ("nbc", r"\bNBC\b(?!\s+News)", "Fake News NBC"),
    ("nbcnews", r"\bNBC\s+News\b", "Fake News NBC News"),
    ("abc", r"\bABC\b(?!\s+News)", "Fake News ABC"),
    ("abcnews", r"\bABC\s+News\b", "Fake News ABC News"),
    ("cbs", r"\bCBS\b", "Fake News CBS"),
    ("huffpo", r"\b(HuffPo|Huffington\s+Post)\b", "Liberal Huffington Post"),
    ("comcast", r"\bComcast\b", "Concast"),
    ("forbes", r"\bForbes\b", "Failing Forbes Magazine"),
    # COVID terms
    ("covid", r"\b(COVID[- ]?19|Covid|Coronavirus)\b", "China Virus"),
    ("covidalt", r"\b(SARS[- ]CoV[- ]?2|Wuhan\s+Virus)\b", "Kung Flu"),
)
