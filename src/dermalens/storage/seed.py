"""Reference entries for every class the classifier can predict."""

from __future__ import annotations

DISEASE_SEED: list[dict[str, str]] = [
    {
        "name": "Acne",
        "description": (
            "Skin condition that occurs when hair follicles become clogged with oil and dead skin cells, "
            "causing blackheads, pimples and cysts."
        ),
        "causes": (
            "Excess sebum production, Propionibacterium acnes bacteria, hormonal changes (especially during "
            "puberty), genetics, stress and unsuitable cosmetic products."
        ),
        "prevention": (
            "Wash the face twice a day with a gentle cleanser, avoid squeezing pimples, use non-comedogenic "
            "products, manage stress and eat a diet low in sugar and dairy."
        ),
        "treatment": (
            "Topical benzoyl peroxide, retinoids or antibiotics. Oral antibiotics (tetracycline, doxycycline) "
            "or isotretinoin for severe cases. See a dermatologist for professional care."
        ),
        "severity": "mild",
    },
    {
        "name": "Eczema",
        "description": "Atopic dermatitis causing red, itchy and inflamed skin. A chronic condition that often relapses.",
        "causes": (
            "Genetics, an overactive immune system, allergens (dust, pet dander, food), irritants (soap, "
            "detergent), extreme weather and stress."
        ),
        "prevention": (
            "Moisturize regularly, avoid allergy triggers, bathe in warm rather than hot water, use mild "
            "fragrance-free soap, manage stress and wear soft fabrics."
        ),
        "treatment": (
            "Topical corticosteroid creams or ointments, topical calcineurin inhibitors, antihistamines for "
            "itching, eczema moisturizers and light therapy for severe cases."
        ),
        "severity": "medium",
    },
    {
        "name": "Melanoma",
        "description": (
            "The most dangerous type of skin cancer, developing from pigment-producing melanocytes. "
            "It can spread to other organs if left untreated."
        ),
        "causes": (
            "Excessive UV exposure, history of sunburn, many moles, genetics, fair skin, weakened immune "
            "system and older age."
        ),
        "prevention": (
            "Use SPF 30+ sunscreen, avoid sun between 10:00 and 16:00, wear protective clothing, avoid tanning "
            "beds and check moles regularly (ABCDE rule)."
        ),
        "treatment": (
            "See an oncologist IMMEDIATELY. Surgical excision, sentinel lymph node biopsy, immunotherapy, "
            "targeted therapy, chemotherapy and radiotherapy. Early detection is critical."
        ),
        "severity": "severe",
    },
    {
        "name": "Psoriasis",
        "description": (
            "Chronic autoimmune disease causing rapid build-up of skin cells, forming thick silvery scales "
            "and itchy red patches."
        ),
        "causes": (
            "Immune system attacking healthy skin cells, genetics. Triggers include stress, infection, certain "
            "medications, skin injury, smoking and alcohol."
        ),
        "prevention": (
            "Manage stress, avoid skin injury, keep skin moisturized, avoid smoking and heavy drinking, "
            "identify and avoid personal triggers."
        ),
        "treatment": (
            "Topical corticosteroids, vitamin D analogues, coal tar, topical retinoids, UV phototherapy and "
            "systemic drugs (methotrexate, biologics) for severe cases."
        ),
        "severity": "medium",
    },
    {
        "name": "Basal Cell Carcinoma",
        "description": (
            "The most common skin cancer, growing slowly from basal cells of the epidermis. "
            "It rarely spreads but can damage local tissue."
        ),
        "causes": (
            "Chronic UV exposure, fair skin, older age, history of sunburn, radiation exposure, weakened "
            "immune system and arsenic exposure."
        ),
        "prevention": (
            "Use broad-spectrum SPF 30+ sunscreen, avoid midday sun, wear hats and protective clothing, check "
            "skin regularly and avoid tanning beds."
        ),
        "treatment": (
            "Surgical excision, Mohs surgery, electrodesiccation and curettage, cryotherapy, radiation therapy "
            "and imiquimod cream for superficial lesions. Consult a dermatologist."
        ),
        "severity": "medium",
    },
    {
        "name": "Seborrheic Keratoses",
        "description": (
            "Benign brown or black skin growths with a rough, wart-like surface. Common in older adults."
        ),
        "causes": "Natural aging, genetics and sun exposure. Not cancerous and not contagious.",
        "prevention": (
            "Protect skin from UV, use sunscreen and protective clothing. Largely unpreventable because it is "
            "age related."
        ),
        "treatment": (
            "Usually needs no treatment unless bothersome. Options: cryotherapy (liquid nitrogen), "
            "electrocautery, laser or shave excision. Consult a dermatologist."
        ),
        "severity": "mild",
    },
    {
        "name": "Warts",
        "description": (
            "Benign skin growths caused by human papillomavirus (HPV). They can appear on many parts of the body."
        ),
        "causes": (
            "HPV infection, direct contact with an infected person, weakened immune system, moist or broken "
            "skin and walking barefoot in public places."
        ),
        "prevention": (
            "Keep hands clean, avoid touching warts, wear footwear in public areas, support the immune system "
            "and avoid biting nails."
        ),
        "treatment": (
            "Topical salicylic acid, cryotherapy (liquid nitrogen), electrocautery, laser therapy or imiquimod "
            "cream. Warts sometimes resolve on their own within two years."
        ),
        "severity": "mild",
    },
    {
        "name": "Atopic Dermatitis",
        "description": "The most common form of eczema: a chronic condition causing dry, itchy and inflamed skin.",
        "causes": (
            "Genetic predisposition, weak skin barrier, overactive immune system, allergens (food, dust mites, "
            "pollen), irritants and stress."
        ),
        "prevention": (
            "Moisturize routinely, avoid harsh soaps, control room temperature and humidity, identify and "
            "avoid allergens, manage stress."
        ),
        "treatment": (
            "Intensive emollients and moisturizers, topical corticosteroids, calcineurin inhibitors, "
            "antihistamines, wet wrap therapy and probiotics."
        ),
        "severity": "medium",
    },
    {
        "name": "Melanocytic Nevus",
        "description": (
            "A benign mole formed from melanocytes. Most are harmless but changes should be monitored."
        ),
        "causes": (
            "Genetics, UV exposure and hormonal changes (pregnancy, puberty). Most are congenital or develop "
            "during childhood."
        ),
        "prevention": (
            "Limit UV exposure, monitor changes with the ABCDE rule (Asymmetry, Border, Color, Diameter, "
            "Evolving) and photograph moles for comparison."
        ),
        "treatment": (
            "Routine observation, surgical excision if suspicious changes appear, biopsy when needed. "
            "Periodic dermatologist evaluation."
        ),
        "severity": "mild",
    },
    {
        "name": "Benign Keratosis-like Lesions",
        "description": (
            "Benign lesions resembling keratosis, including seborrheic keratosis and solar lentigo (age spots)."
        ),
        "causes": "Natural aging, chronic sun exposure and genetics. Not malignant and not contagious.",
        "prevention": (
            "Use sunscreen consistently, avoid excessive UV, wear protective clothing, wide-brimmed hats and "
            "UV-blocking glasses."
        ),
        "treatment": (
            "Generally needs no treatment. If bothersome: cryotherapy, laser therapy, chemical peels or "
            "IPL (Intense Pulsed Light)."
        ),
        "severity": "mild",
    },
    {
        "name": "Tinea",
        "description": (
            "Fungal skin infection that can affect many parts of the body (ringworm, athlete's foot, jock itch)."
        ),
        "causes": (
            "Dermatophyte fungi, warm and humid environments, contact with infected people, sharing towels or "
            "clothing, weakened immune system and poor hygiene."
        ),
        "prevention": (
            "Keep skin clean and dry, do not share towels or clothing, wear footwear in wet public areas and "
            "change underwear regularly."
        ),
        "treatment": (
            "Topical antifungals (clotrimazole, terbinafine), oral antifungals for severe cases (griseofulvin, "
            "itraconazole). Keep the area dry and clean."
        ),
        "severity": "mild",
    },
]
