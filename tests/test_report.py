"""Unit tests for soilrisk.analysis.report."""
import pytest

from soilrisk import __version__
from soilrisk.analysis.models import Analyst, EvaluationVersion, Project, Standard, UnratedValue, Zone
from soilrisk.analysis.report import assemble


@pytest.fixture
def context():
    return {
        'project': Project('P1', 'Pipeline North', client_ref='C-100', project_type='pipeline'),
        'zone': Zone('ZN1', 'P1', 'Crossing A', latitude=52.1, longitude=13.4),
        'analyst': Analyst('analyst-01', 'Jane Doe', 'jane.doe@example.com'),
    }


@pytest.fixture
def version():
    return EvaluationVersion(
        output_id='OUT1',
        version_number=2,
        content={
            'DP1': {
                'timestamp': '2024-05-02',
                'values': {'Z2': 15, 'Z99': 42},
                'ratings': {'Z2': -4},
                'unrated': [{'code': 'Z99', 'raw_value': 42, 'reason': 'unknown_parameter'}],
                'metrics': {},
                'total_rating': -4,
                'classification': 'Ib',
                'stress': 'low',
            },
        },
        total_rating=-4,
        classification='Ib',
        stress='low',
        unrated=(UnratedValue('Z99', 42, 'unknown_parameter', 'DP1'),),
        recommendations='Cathodic protection',
        created_by='analyst-01',
        created_at='2024-05-03T08:00:00+00:00',
    )


class TestAssemble:
    """Report documents built from frozen version content."""

    def test_rows_and_summary(self, version, context, din_standard):
        document = assemble(version, context['project'], context['zone'], din_standard, context['analyst'])

        z2 = next(r for r in document.rows if r.code == 'Z2')
        assert (z2.name, z2.value, z2.unit, z2.rating) == ('Specific soil resistivity', 15, 'Ω⋅m', -4)
        assert document.total_rating == -4
        assert document.classification == 'Ib'
        assert document.stress == 'low'
        assert document.recommendations == 'Cathodic protection'
        assert document.unrated == [
            {'datapoint_id': 'DP1', 'code': 'Z99', 'raw_value': 42, 'reason': 'unknown_parameter'}
        ]
        assert document.is_preview is False

    def test_code_missing_from_standard_renders_raw(self, version, context, din_standard):
        document = assemble(version, context['project'], context['zone'], din_standard, context['analyst'])
        z99 = next(r for r in document.rows if r.code == 'Z99')
        assert (z99.name, z99.unit, z99.rating, z99.value) == (None, None, None, 42)

    def test_standard_removed_from_catalog(self, version, context):
        empty = Standard(id='din50929-3', name='din50929-3')
        document = assemble(version, context['project'], context['zone'], empty, context['analyst'])
        assert [r.code for r in document.rows] == ['Z2', 'Z99']
        assert all(r.name is None for r in document.rows)
        assert document.total_rating == -4

    def test_header_and_footer(self, version, context, din_standard):
        document = assemble(version, context['project'], context['zone'], din_standard, context['analyst'])
        assert document.header['project_name'] == 'Pipeline North'
        assert document.header['zone_name'] == 'Crossing A'
        assert document.header['standard_name'] == 'DIN 50929-3:2018'
        assert document.header['version_number'] == 2
        assert document.header['datapoint_count'] == 1
        assert document.footer['analyst_name'] == 'Jane Doe'
        assert document.footer['created_at'] == '2024-05-03T08:00:00+00:00'
        assert document.footer['engine_version'] == __version__

    def test_metric_rows(self, context, as_nzs_standard):
        version = EvaluationVersion(
            output_id='OUT2', version_number=1,
            content={
                'DP1': {'values': {'PH': 7}, 'ratings': {}, 'metrics': {
                    'ZINC_LOSS_RATE': {'computable': True, 'zinc_loss_rate_mean': 15.0,
                                       'zinc_loss_rate_spread': 4.0, 'service_life_years': 5},
                }},
                'DP2': {'values': {}, 'ratings': {}, 'metrics': {
                    'ZINC_LOSS_RATE': {'computable': False, 'zinc_loss_rate_mean': 0.0,
                                       'zinc_loss_rate_spread': 0.0},
                }},
            },
            total_rating=0, classification='Ia', stress='very low',
        )
        document = assemble(version, context['project'], context['zone'], as_nzs_standard, context['analyst'])

        assert [m.display for m in document.metrics] == ["15 ± 4 [μm/year]", 'not computable']
        assert document.metrics[0].name == 'Zinc loss rate'
        assert document.metrics[0].details['service_life_years'] == 5

    def test_to_dict_is_plain(self, version, context, din_standard):
        data = assemble(version, context['project'], context['zone'], din_standard,
                        context['analyst'], is_preview=True).to_dict()
        assert data['is_preview'] is True
        assert data['rows'][0]['datapoint_id'] == 'DP1'
