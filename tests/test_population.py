"""Tests for the population optimizer."""

import numpy as np
import pytest


def _optimizer(cache, image, config, **kwargs):
    from threadart.field.residual import grayscale_field
    from threadart.search.population import PopulationOptimizer

    return PopulationOptimizer(cache, grayscale_field(image, config.scoring), config, **kwargs)


class TestGenomes:
    """Tests for genome construction and evaluation."""

    def test_random_genomes_are_valid(self, small_cache, small_config, cross_image):
        opt = _optimizer(small_cache, cross_image, small_config)

        for ind in opt.population:
            assert len(ind.genes) == small_config.population.genome_length
            assert opt.is_valid(ind.genes)

    def test_render_accumulates_weight(self, small_cache, small_config, cross_image):
        opt = _optimizer(small_cache, cross_image, small_config)
        ink = opt.render([0, 12, 0])

        pixels = small_cache.pixels(0, 12)
        assert np.all(ink[pixels] == 2 * small_config.search.line_weight)
        assert ink.sum() == pytest.approx(2 * small_config.search.line_weight * len(pixels))

    def test_empty_walk_fitness_is_total_demand(self, small_cache, small_config, cross_image):
        opt = _optimizer(small_cache, cross_image, small_config)
        ink = opt.render([3])

        assert opt.fitness(ink) == pytest.approx(-float(opt.demand.sum(dtype=np.float64)))

    def test_initial_genomes_are_used(self, small_cache, small_config, cross_image):
        seed = [0, 12, 4, 16, 8, 20]
        opt = _optimizer(small_cache, cross_image, small_config, initial_genomes=[seed])

        first = opt.population[0].genes
        assert first[:len(seed)] == seed
        assert len(first) == small_config.population.genome_length
        assert opt.is_valid(first)

    def test_elite_count_at_least_one(self, small_cache, small_config, cross_image):
        from threadart.config import with_overrides

        assert _optimizer(small_cache, cross_image, small_config).elite_count == 2

        config = with_overrides(small_config, "population", elitism_fraction=0.0)
        assert _optimizer(small_cache, cross_image, config).elite_count == 1


class TestOperators:
    """Tests for selection, crossover and mutation."""

    def test_crossover_identical_parents(self, small_cache, small_config, cross_image):
        """Crossing a genome with itself reproduces it."""
        opt = _optimizer(small_cache, cross_image, small_config)
        parent = opt.population[0]

        child = opt.crossover(parent, parent)

        assert child == parent.genes
        assert child is not parent.genes

    def test_crossover_produces_valid_child(self, small_cache, small_config, cross_image):
        opt = _optimizer(small_cache, cross_image, small_config)

        for _ in range(20):
            child = opt.crossover(opt.tournament(), opt.tournament())
            assert len(child) == small_config.population.genome_length
            assert opt.is_valid(child)

    def test_crossover_starts_at_first_parent(self, small_cache, small_config, cross_image):
        opt = _optimizer(small_cache, cross_image, small_config)
        a, b = opt.population[0], opt.population[1]

        assert opt.crossover(a, b)[0] == a.genes[0]

    def test_tournament_returns_member(self, small_cache, small_config, cross_image):
        opt = _optimizer(small_cache, cross_image, small_config)

        for _ in range(10):
            assert opt.tournament() in opt.population

    def test_mutation_keeps_validity_and_ink(self, small_cache, small_config, cross_image):
        from threadart.config import with_overrides

        config = with_overrides(small_config, "population", mutation_rate=1.0)
        opt = _optimizer(small_cache, cross_image, config)
        ind = opt.evaluate(list(opt.population[0].genes))

        mutated = opt.mutate(ind)

        assert opt.is_valid(mutated.genes)
        assert len(mutated.genes) == config.population.genome_length
        np.testing.assert_allclose(mutated.ink, opt.render(mutated.genes))
        assert mutated.fitness == pytest.approx(opt.fitness(opt.render(mutated.genes)))

    def test_no_mutation_at_zero_rate(self, small_cache, small_config, cross_image):
        from threadart.config import with_overrides

        config = with_overrides(small_config, "population", mutation_rate=0.0)
        opt = _optimizer(small_cache, cross_image, config)
        genes = list(opt.population[0].genes)

        assert opt.mutate(opt.evaluate(list(genes))).genes == genes


class TestEvolution:
    """Tests for the generational loop."""

    def test_history_never_decreases(self, small_cache, small_config, cross_image):
        from threadart.models import StopReason

        outcome = _optimizer(small_cache, cross_image, small_config).run()

        history = outcome.fitness_history
        assert len(history) == outcome.steps + 1
        assert all(b >= a for a, b in zip(history, history[1:]))
        assert outcome.best_fitness == history[-1]
        assert outcome.stop_reason in (StopReason.STAGNATION, StopReason.MAX_GENERATIONS)

    def test_max_generations(self, small_cache, small_config, cross_image):
        from threadart.config import with_overrides
        from threadart.models import StopReason

        config = with_overrides(
            small_config, "population",
            max_generations=3, max_generations_without_improvement=100,
        )
        outcome = _optimizer(small_cache, cross_image, config).run()

        assert outcome.steps == 3
        assert outcome.stop_reason == StopReason.MAX_GENERATIONS

    def test_seeded_runs_are_reproducible(self, small_cache, small_config, cross_image):
        first = _optimizer(small_cache, cross_image, small_config).run()
        second = _optimizer(small_cache, cross_image, small_config).run()

        assert first.sequence == second.sequence
        assert first.fitness_history == second.fitness_history

    def test_best_sequence_is_valid_walk(self, small_cache, small_config, cross_image):
        opt = _optimizer(small_cache, cross_image, small_config)
        outcome = opt.run()

        assert opt.is_valid(outcome.sequence)
        assert len(outcome.segments) == len(outcome.sequence) - 1

    def test_cancel_after_first_generation(self, small_cache, small_config, cross_image):
        from threadart.config import with_overrides
        from threadart.models import StopReason
        from threadart.scheduler import CancelToken

        config = with_overrides(small_config, "population", max_generations_without_improvement=100)
        token = CancelToken()
        outcome = _optimizer(small_cache, cross_image, config).run(
            progress=lambda update: token.cancel(),
            cancel=token,
        )

        assert outcome.stop_reason == StopReason.CANCELLED
        assert outcome.steps == 1
        assert len(outcome.fitness_history) == 2

    def test_pipeline_population_strategy(self, small_config, cross_image):
        from dataclasses import replace

        from threadart.config import with_overrides
        from threadart.models import Strategy
        from threadart.pipeline import generate_string_art

        config = with_overrides(replace(small_config, strategy="population"), "population", seed_with_greedy=True)
        result = generate_string_art(cross_image, config)

        assert result.stats.strategy == Strategy.POPULATION
        assert len(result.sequence) == config.population.genome_length
        assert result.stats.fitness_history
        assert result.stats.best_fitness == max(result.stats.fitness_history)
