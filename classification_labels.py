"""Chapter and subchapter names of the Romanian budget classifications.

Keys are digits-only codes: two digits for chapters, four for subchapters.
Paragraph names (six digits) come from the classification tables in the store.
"""

from typing import Optional

from models import ClassificationDimension

FUNCTIONAL_CHAPTERS: dict[str, str] = {
    "01": "Impozit pe profit",
    "03": "Impozit pe venit",
    "04": "Cote si sume defalcate din impozitul pe venit",
    "07": "Impozite si taxe pe proprietate",
    "11": "Sume defalcate din TVA",
    "12": "Taxa pe valoarea adaugata",
    "15": "Taxe pe servicii specifice",
    "16": "Taxe pe utilizarea bunurilor, autorizarea utilizarii bunurilor sau pe desfasurarea de activitati",
    "18": "Alte impozite si taxe fiscale",
    "30": "Venituri din proprietate",
    "33": "Venituri din prestari de servicii si alte activitati",
    "34": "Venituri din taxe administrative, eliberari permise",
    "35": "Amenzi, penalitati si confiscari",
    "36": "Diverse venituri",
    "37": "Transferuri voluntare, altele decat subventiile",
    "39": "Venituri din valorificarea unor bunuri",
    "40": "Operatiuni financiare",
    "42": "Subventii de la bugetul de stat",
    "43": "Subventii de la alte administratii",
    "48": "Sume primite de la UE/alti donatori in contul platilor efectuate si prefinantari",
    "50": "Fonduri externe nerambursabile",
    "51": "Autoritati publice si actiuni externe",
    "54": "Alte servicii publice generale",
    "55": "Tranzactii privind datoria publica si imprumuturi",
    "56": "Transferuri cu caracter general intre diferite nivele ale administratiei",
    "57": "Plati efectuate in anii precedenti si recuperate in anul curent",
    "59": "Cheltuieli aferente programelor cu finantare rambursabila",
    "60": "Aparare",
    "61": "Ordine publica si siguranta nationala",
    "65": "Invatamant",
    "66": "Sanatate",
    "67": "Cultura, recreere si religie",
    "68": "Asigurari si asistenta sociala",
    "70": "Locuinte, servicii si dezvoltare publica",
    "74": "Protectia mediului",
    "80": "Actiuni generale economice, comerciale si de munca",
    "81": "Combustibili si energie",
    "83": "Agricultura, silvicultura, piscicultura si vanatoare",
    "84": "Transporturi",
    "85": "Comunicatii",
    "87": "Alte actiuni economice",
    "96": "Deficit",
    "98": "Excedent",
    "99": "Excedent/Deficit",
}

FUNCTIONAL_SUBCHAPTERS: dict[str, str] = {
    "5102": "Autoritati executive si legislative",
    "5402": "Alte servicii publice generale",
    "5502": "Tranzactii privind datoria publica si imprumuturi",
    "6102": "Ordine publica si siguranta nationala",
    "6502": "Invatamant",
    "6602": "Sanatate",
    "6702": "Cultura, recreere si religie",
    "6802": "Asigurari si asistenta sociala",
    "7002": "Locuinte, servicii si dezvoltare publica",
    "7402": "Protectia mediului",
    "8002": "Actiuni generale economice, comerciale si de munca",
    "8102": "Combustibili si energie",
    "8302": "Agricultura, silvicultura, piscicultura si vanatoare",
    "8402": "Transporturi",
    "8702": "Alte actiuni economice",
}

ECONOMIC_CHAPTERS: dict[str, str] = {
    "10": "Cheltuieli de personal",
    "20": "Bunuri si servicii",
    "30": "Dobanzi",
    "40": "Subventii",
    "50": "Fonduri de rezerva",
    "51": "Transferuri intre unitati ale administratiei publice",
    "55": "Alte transferuri",
    "56": "Proiecte cu finantare din fonduri externe nerambursabile (FEN) postaderare",
    "57": "Asistenta sociala",
    "58": "Proiecte cu finantare din fonduri externe nerambursabile aferente cadrului financiar 2014-2020",
    "59": "Alte cheltuieli",
    "60": "Proiecte cu finantare din sumele reprezentand asistenta financiara nerambursabila aferenta PNRR",
    "61": "Proiecte cu finantare din sumele aferente componentei de imprumut a PNRR",
    "70": "Cheltuieli de capital",
    "71": "Active nefinanciare",
    "72": "Active financiare",
    "79": "Operatiuni financiare",
    "80": "Imprumuturi",
    "81": "Rambursari de credite",
    "85": "Plati efectuate in anii precedenti si recuperate in anul curent",
}

ECONOMIC_SUBCHAPTERS: dict[str, str] = {
    "1001": "Cheltuieli salariale in bani",
    "1002": "Cheltuieli salariale in natura",
    "1003": "Contributii",
    "2001": "Bunuri si servicii",
    "2002": "Reparatii curente",
    "2003": "Hrana",
    "2004": "Medicamente si materiale sanitare",
    "2005": "Bunuri de natura obiectelor de inventar",
    "2006": "Deplasari, detasari, transferari",
    "2011": "Carti, publicatii si materiale documentare",
    "2013": "Pregatire profesionala",
    "2030": "Alte cheltuieli",
    "3001": "Dobanzi aferente datoriei publice interne",
    "3002": "Dobanzi aferente datoriei publice externe",
    "4003": "Subventii pentru acoperirea diferentelor de pret si tarif",
    "5101": "Transferuri curente",
    "5102": "Transferuri de capital",
    "5501": "Transferuri interne",
    "5702": "Ajutoare sociale",
    "5901": "Burse",
    "5917": "Despagubiri civile",
    "5940": "Sume aferente persoanelor cu handicap neincadrate",
    "7101": "Active fixe",
    "7103": "Reparatii capitale aferente activelor fixe",
    "8101": "Rambursari de credite externe",
    "8102": "Rambursari de credite interne",
}

_TABLES = {
    ClassificationDimension.functional: (FUNCTIONAL_CHAPTERS, FUNCTIONAL_SUBCHAPTERS),
    ClassificationDimension.economic: (ECONOMIC_CHAPTERS, ECONOMIC_SUBCHAPTERS),
}


def static_label(dimension: ClassificationDimension, code: str) -> Optional[str]:
    chapters, subchapters = _TABLES[dimension]
    if len(code) == 2:
        return chapters.get(code)
    if len(code) == 4:
        return subchapters.get(code)
    return None
