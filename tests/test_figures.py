import pandas as pd
import pytest

from copd_prevalence.visualization.figures import (
    benchmark_data,
    comparison_data,
    correlation_data,
    generate_all_figures,
)


@pytest.fixture
def departmental():
    return pd.DataFrame({
        'Department': ['Nariño', 'Cauca', 'Boyacá', 'Antioquia'],
        'Prevalence': ['0.0400', '0.0300', '0.0200', '0.0100'],
    })


def test_comparison_orders_by_estimate(analysis_df, departmental):
    comp = comparison_data(analysis_df, departmental, top_n=3)
    assert list(comp['DPNOM']) == ['Nariño', 'Cauca', 'Boyacá']
    assert list(comp['Estimated']) == [0.04, 0.03, 0.02]
    expected = analysis_df.groupby('DPNOM')['total_prevalence'].median()['Cauca']
    assert comp.loc[1, 'total_prevalence'] == pytest.approx(expected)


def test_comparison_matches_spelling_variants(analysis_df):
    estimates = pd.DataFrame({'Department': ['Narino'], 'Prevalence': [0.05]})
    comp = comparison_data(analysis_df, estimates)
    assert comp.loc[0, 'DPNOM'] == 'Nariño'
    assert comp.loc[0, 'Estimated'] == 0.05


def test_comparison_respects_score_threshold(analysis_df):
    estimates = pd.DataFrame({'Department': ['Narinoo'], 'Prevalence': [0.05]})
    assert comparison_data(analysis_df, estimates).loc[0, 'Estimated'] == 0.05
    strict = comparison_data(analysis_df, estimates, score_threshold=100)
    assert strict['Estimated'].isna().all()


def test_correlation_outliers():
    data = pd.DataFrame({
        'DPNOM': list('ABCDEF'),
        'spirometry_rate': [500.0, 520.0, 510.0, 530.0, 515.0, 5000.0],
        'total_prevalence': [0.01, 0.011, 0.012, 0.010, 0.011, 0.012],
    })
    corr = correlation_data(data)
    assert corr.set_index('DPNOM')['is_outlier'].to_dict() == {
        'A': False, 'B': False, 'C': False, 'D': False, 'E': False, 'F': True,
    }


def test_benchmark_flags():
    data = pd.DataFrame({
        'DPNOM': ['A', 'A', 'B', 'C'],
        'spirometry_rate': [1200.0, 1100.0, 600.0, 300.0],
    })
    bench = benchmark_data(data, benchmark=1105.08)
    assert list(bench['DPNOM']) == ['C', 'B', 'A']
    assert list(bench['above_50pct']) == [False, True, True]
    assert list(bench['above_benchmark']) == [False, False, True]


def test_generate_all_figures(tmp_path, analysis_df, departmental):
    stats = generate_all_figures(analysis_df, departmental, tmp_path)
    for stem in ('Fig1_Colombia_Prevalence_Maps', 'Fig2_Spirometry_Correlation',
                 'Fig3_Spirometry_Benchmark'):
        assert (tmp_path / f"{stem}.png").exists()
        assert (tmp_path / f"{stem}.pdf").exists()
    assert -1.0 <= stats['pearson_r'] <= 1.0
