# server/reminders/core/utils/html.py
"""server/reminders/core/utils/html.py
~~~~~~~~~~~~~~~~~~~~~~~~
Conversion HTML -> texte brut (partie text/plain des e-mails, aperçus).
"""

import re

from bs4 import BeautifulSoup, Comment

# Contenu jamais lisible par un humain
_INVISIBLE = ["style", "script", "head", "title", "template"]
# Éléments suivis d'un saut de ligne dans le texte
_BLOCKS = ["p", "div", "li", "ul", "ol", "table", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote"]
_BLANKS = re.compile(r"\n{3,}")


def html_to_text(body: str) -> str:
    soup = BeautifulSoup(body or "", "html.parser")
    for node in soup(_INVISIBLE):
        node.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for li in soup.find_all("li"):
        li.insert(0, "- ")
    for block in soup.find_all(_BLOCKS):
        block.append("\n")

    lines = [" ".join(line.split()) for line in soup.get_text().splitlines()]
    return _BLANKS.sub("\n\n", "\n".join(lines)).strip()
