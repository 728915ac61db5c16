"""Physical constants, amino acid masses and default tolerance settings.

This module provides the constants used throughout proteoformfast for
intact-mass work: isotope spacing, NeuCode lysine label shift, residue masses
for computing theoretical proteoform masses, and the default relation and
peak parameters.

Key Features
------------
- MONOISOTOPIC_UNIT_MASS for missed-monoisotopic correction
- NEUCODE_LYSINE_MASS_SHIFT for light/heavy NeuCode lysine pairs
- Residue masses for computing intact proteoform masses from sequence
- Common PTM masses (Acetyl, Phospho, Oxidation, ...)
- Default tolerance and clustering settings

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
- IUPAC amino acid masses: https://www.unimod.org/masses.html
- Unimod modification masses: https://www.unimod.org/modifications_list.php
"""

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Water mass (H2O), added once per intact proteoform
H2O_MASS = 18.010564684  # Da

# =============================================================================
# Isotope Spacing
# =============================================================================

# Mass difference between C12 and C13
ISOTOPE_MASS_DIFFERENCE = 1.003355  # Da

# Average spacing between isotope peaks of an intact protein envelope.
# Lower than the 13C spacing because heavy isotopes of N, O, S and H
# contribute at high mass. Used to correct missed monoisotopic picks.
MONOISOTOPIC_UNIT_MASS = 1.0023  # Da

# =============================================================================
# NeuCode Labeling
# =============================================================================

# Mass difference between the heavy (+8 Da, 13C6 15N2) and light (+8 Da,
# 2H8) NeuCode lysine isotopologues
NEUCODE_LYSINE_MASS_SHIFT = 0.036015372  # Da per lysine

# =============================================================================
# Amino Acid Monoisotopic Masses (Da)
# =============================================================================

# Residue masses (not including terminal H2O)
AA_MASSES_DICT = {
    'A': 71.037114,   # Alanine
    'R': 156.101111,  # Arginine
    'N': 114.042927,  # Asparagine
    'D': 115.026943,  # Aspartic acid
    'C': 103.009185,  # Cysteine (unmodified)
    'E': 129.042593,  # Glutamic acid
    'Q': 128.058578,  # Glutamine
    'G': 57.021464,   # Glycine
    'H': 137.058912,  # Histidine
    'I': 113.084064,  # Isoleucine
    'L': 113.084064,  # Leucine
    'K': 128.094963,  # Lysine
    'M': 131.040485,  # Methionine
    'F': 147.068414,  # Phenylalanine
    'P': 97.052764,   # Proline
    'S': 87.032028,   # Serine
    'T': 101.047679,  # Threonine
    'W': 186.079313,  # Tryptophan
    'Y': 163.063320,  # Tyrosine
    'V': 99.068414,   # Valine
}

# Non-standard amino acids mapped to the closest standard mass
AA_MASSES_NONSTANDARD = {
    'X': 113.084064,  # Unknown → Leu/Ile (most common)
    'Z': 128.058578,  # Glu/Gln → Gln
    'B': 114.042927,  # Asp/Asn → Asn
    'J': 113.084064,  # Leu/Ile → Leu
    'U': 103.009185,  # Selenocysteine → Cys (similar mass)
    'O': 131.040485,  # Pyrrolysine → Met (closest mass)
}

# Residue alphabet used when shuffling decoy sequences
STANDARD_AMINO_ACIDS = ''.join(sorted(AA_MASSES_DICT))

# =============================================================================
# Common Modification Masses
# =============================================================================

CARBAMIDOMETHYL_MASS = 57.021464  # Unimod:4
OXIDATION_MASS = 15.994915        # Unimod:35
ACETYL_MASS = 42.010565           # Unimod:1
PHOSPHO_MASS = 79.966331          # Unimod:21
DEAMIDATION_MASS = 0.984016       # Unimod:7
METHYL_MASS = 14.015650           # Unimod:34
DIMETHYL_MASS = 28.031300         # Unimod:36
TRIMETHYL_MASS = 42.046950        # Unimod:37

MODIFICATION_MASSES = {
    'Carbamidomethyl': CARBAMIDOMETHYL_MASS,
    'Oxidation': OXIDATION_MASS,
    'Acetyl': ACETYL_MASS,
    'Phospho': PHOSPHO_MASS,
    'Deamidation': DEAMIDATION_MASS,
    'Methyl': METHYL_MASS,
    'Dimethyl': DIMETHYL_MASS,
    'Trimethyl': TRIMETHYL_MASS,
}

# =============================================================================
# Default Tolerance Settings
# =============================================================================

# Intact-mass tolerance for aggregating observations (ppm)
DEFAULT_MASS_TOLERANCE = 3.0  # ppm

# Retention time window for aggregating observations (minutes)
DEFAULT_RETENTION_TIME_TOLERANCE = 3.0  # min

DEFAULT_MISSED_MONOS = 3
DEFAULT_MISSED_LYSINES = 1

# Coarse plain-Da gates for relation building
DEFAULT_EE_MAX_MASS_DIFFERENCE = 250.0          # Da, unlabeled
DEFAULT_EE_MAX_MASS_DIFFERENCE_LABELED = 150.0  # Da, NeuCode labeled
DEFAULT_ET_MAX_MASS_DIFFERENCE = 500.0          # Da
DEFAULT_EE_MAX_RETENTION_TIME_DIFFERENCE = 2.5  # min

# Delta-mass peak clustering
DEFAULT_PEAK_WIDTH_BASE = 0.015        # Da
DEFAULT_MIN_PEAK_COUNT = 10
DEFAULT_NO_MANS_LAND_LOWER_BOUND = 0.22  # fraction of 1 Da
DEFAULT_NO_MANS_LAND_UPPER_BOUND = 0.88  # fraction of 1 Da

# Pseudocount added to light and heavy intensity sums before log2 ratios
QUANT_PSEUDOCOUNT = 0.1

# =============================================================================
# Mass Accuracy Validation
# =============================================================================

def validate_constants():
    """Validate that constants are physically reasonable.

    Raises AssertionError if any constant is out of expected range.
    This is a sanity check to catch copy-paste errors or typos.
    """
    assert 18.00 < H2O_MASS < 18.02, f"H2O_MASS is wrong: {H2O_MASS}"

    # Isotope envelope spacing sits between 1 Da and the 13C spacing
    assert 1.0 < MONOISOTOPIC_UNIT_MASS <= ISOTOPE_MASS_DIFFERENCE, \
        f"MONOISOTOPIC_UNIT_MASS is wrong: {MONOISOTOPIC_UNIT_MASS}"

    # NeuCode spacing is 36 mDa per lysine
    assert 0.035 < NEUCODE_LYSINE_MASS_SHIFT < 0.037, \
        f"NEUCODE_LYSINE_MASS_SHIFT is wrong: {NEUCODE_LYSINE_MASS_SHIFT}"

    for aa, mass in AA_MASSES_DICT.items():
        assert mass > 50.0, f"AA {aa} mass is too low: {mass}"
        assert mass < 250.0, f"AA {aa} mass is too high: {mass}"

    assert DEFAULT_NO_MANS_LAND_LOWER_BOUND < DEFAULT_NO_MANS_LAND_UPPER_BOUND
