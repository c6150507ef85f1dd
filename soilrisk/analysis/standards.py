# soilrisk/analysis/standards.py
"""
Built-in standard definitions.

Definitions use the same plain structure as an external standards file
(see config/sample_standards.json):

    buckets:    [lower, upper, rating] triplets, ascending, covering the domain
    categories: {value: rating} for exact string matches
    formula:    name of a derived metric (see rating_engine.FORMULAS)
    thresholds: classification rows, top-down, last row has min_total = None
"""

DIN_50929_3 = {
    'id': 'din50929-3',
    'name': 'DIN 50929-3:2018',
    'description': 'Probability of corrosion of metallic materials when subject '
                   'to corrosion from the outside',
    'thresholds': [
        {'min_total': 0, 'class': 'Ia', 'stress': 'very low'},
        {'min_total': -4, 'class': 'Ib', 'stress': 'low'},
        {'min_total': -10, 'class': 'II', 'stress': 'medium'},
        {'min_total': None, 'class': 'III', 'stress': 'high'},
    ],
    'parameters': [
        {
            'code': 'Z1',
            'name': 'Soil type/Proportion of components that can be sloughed off',
            'unit': '%',
            'domain': [0, 100],
            'buckets': [[0, 10, 4], [10, 30, 2], [30, 50, 0], [50, 80, -2], [80, 100, -4]],
            'categories': {'impurities': -12},
        },
        {
            'code': 'Z2',
            'name': 'Specific soil resistivity',
            'unit': 'Ω⋅m',
            'domain': [0, 10000],
            'buckets': [[0, 10, -6], [10, 20, -4], [20, 50, -2], [50, 200, 0],
                        [200, 500, 2], [500, 10000, 4]],
        },
        {
            'code': 'Z3',
            'name': 'Water content',
            'unit': '%',
            'domain': [0, 100],
            'buckets': [[0, 20, 0], [20, 40, -1], [40, 100, -2]],
        },
        {
            'code': 'Z4',
            'name': 'pH value',
            'unit': '-',
            'domain': [0, 14],
            'buckets': [[0, 4, -2], [4, 5, -1], [5, 8, 0], [8, 9, -1], [9, 14, -2]],
        },
        {
            'code': 'Z5',
            'name': 'Buffering capacity',
            'unit': 'ml/kg',
            'domain': [0, 100],
            'buckets': [[0, 2, 0], [2, 10, -1], [10, 20, -2], [20, 100, -3]],
        },
        {
            'code': 'Z6',
            'name': 'Carbonate content',
            'unit': '%',
            'domain': [0, 100],
            'buckets': [[0, 1, -2], [1, 5, -1], [5, 10, 0], [10, 100, 1]],
        },
        {
            'code': 'Z7',
            'name': 'Sulphate reducing bacteria/Sulphide content',
            'unit': 'mg/kg',
            'domain': [0, 50],
            'buckets': [[0, 5, 0], [5, 10, -3], [10, 50, -6]],
        },
        {
            'code': 'Z8',
            'name': 'Sulphate content',
            'unit': 'mmol/kg',
            'domain': [0, 50],
            'buckets': [[0, 2, 0], [2, 5, -1], [5, 10, -2], [10, 50, -3]],
        },
        {
            'code': 'Z9',
            'name': 'Neutral salts/Chlorides and sulphates in aqueous extract',
            'unit': 'mmol/kg',
            'domain': [0, 500],
            'buckets': [[0, 3, 0], [3, 10, -1], [10, 30, -2], [30, 100, -3], [100, 500, -4]],
        },
        {
            'code': 'Z10',
            'name': 'Location of the object in relation to the groundwater',
            'unit': '-',
            'categories': {'never': 0, 'constant': -1, 'intermittent': -2},
        },
    ],
}

AS_NZS_2041_1 = {
    'id': 'as-nzs-2041.1',
    'name': 'AS/NZS 2041.1:2011',
    'description': 'Buried corrugated metal structures: zinc coating loss rate and '
                   'steel reserve',
    'thresholds': DIN_50929_3['thresholds'],
    'parameters': [
        {'code': 'RESISTIVITY', 'name': 'Soil resistivity', 'unit': 'Ω⋅m'},
        {'code': 'CHLORIDES', 'name': 'Chloride content', 'unit': 'mg/kg'},
        {'code': 'SOIL_TYPE', 'name': 'Soil drainage', 'unit': '-'},
        {'code': 'PH', 'name': 'pH value', 'unit': '-'},
        {'code': 'COATING_THICKNESS', 'name': 'Zinc coating thickness', 'unit': 'µm'},
        {
            'code': 'ZINC_LOSS_RATE',
            'name': 'Zinc loss rate',
            'unit': 'µm/year',
            'formula': 'zinc_loss_rate',
        },
    ],
}

BUILTIN_STANDARDS = [DIN_50929_3, AS_NZS_2041_1]
