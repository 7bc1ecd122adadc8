"""
Population-based (genetic) search over whole pin sequences.

Each genome is a fixed-length pin walk whose consecutive pins always form a
cached chord. Fitness renders the walk into an ink buffer and compares it to
the target demand. New generations keep the elites and breed the rest with
tournament selection, adjacency-preserving crossover and a local-search
mutation that re-picks single pins against their two neighbours.
"""

import math

import networkx as nx
import numpy as np

from threadart.field.residual import RESIDUAL_MAX
from threadart.field.scoring import score_bundle
from threadart.models import ProgressUpdate, StopReason, Strategy, segments_from_sequence
from threadart.scheduler import drive
from threadart.search.outcome import SearchOutcome
from threadart.tracer import get_tracer, trace


class Individual:
    """A genome with its rendered ink buffer and fitness (higher is better)."""

    __slots__ = ("genes", "ink", "fitness")

    def __init__(self, genes, ink, fitness):
        self.genes = genes
        self.ink = ink
        self.fitness = fitness

    def __repr__(self):
        return f"Individual(len={len(self.genes)}, fitness={self.fitness:.1f})"


class PopulationOptimizer:
    """
    Generational optimizer; one ``step()`` breeds one generation.

    ``field`` supplies the target demand and is never modified. All
    randomness comes from ``rng`` (seeded from the config by default) so runs
    are reproducible.
    """

    def __init__(self, cache, field, config, rng=None, initial_genomes=None):
        self.cache = cache
        self.field = field
        self.scoring = config.scoring
        self.params = config.population
        self.weight = config.search.line_weight
        self.yield_every = config.schedule.yield_every_generations
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)

        self.demand = field.values.copy()
        self.target = field.target
        self.elite_count = min(
            self.params.population_size,
            max(1, math.ceil(self.params.elitism_fraction * self.params.population_size)),
        )

        self.generations = 0
        self.stale_generations = 0
        self.stop_reason = None
        self.history = []

        self.population = self._initial_population(initial_genomes or [])
        self.best = self._fittest(self.population)
        self.history.append(self.best.fitness)

    @property
    def done(self):
        return self.stop_reason is not None

    def stop(self, reason):
        if self.done:
            return
        self.stop_reason = reason
        get_tracer().event(
            f"Population stopped: {reason.value}",
            generations=self.generations,
            fitness=self.best.fitness,
        )

    # Genomes

    def random_genome(self, length, start=None):
        """A random valid walk of ``length`` pins."""
        if start is None:
            start = int(self.rng.integers(self.cache.pin_count))
        genes = [start]
        return self.extend_genome(genes, length)

    def extend_genome(self, genes, length):
        """Truncate ``genes`` to ``length`` or continue it with a random valid walk."""
        genes = list(genes[:length])
        while len(genes) < length:
            options = self.cache.neighbors(genes[-1])
            genes.append(options[int(self.rng.integers(len(options)))])
        return genes

    def is_valid(self, genes):
        return all(self.cache.has_line(a, b) for a, b in zip(genes[:-1], genes[1:]))

    def render(self, genes):
        """Accumulated ink of a walk on a blank canvas, flat float32."""
        ink = np.zeros(self.cache.size * self.cache.size, dtype=np.float32)
        for a, b in zip(genes[:-1], genes[1:]):
            ink[self.cache.pixels(a, b)] += self.weight
        return ink

    def fitness(self, ink):
        """Negative total absolute difference between rendered ink and demand."""
        rendered = np.minimum(ink, RESIDUAL_MAX)
        return -float(np.abs(rendered - self.demand).sum(dtype=np.float64))

    def evaluate(self, genes):
        ink = self.render(genes)
        return Individual(genes, ink, self.fitness(ink))

    def _initial_population(self, seeds):
        length = self.params.genome_length
        population = [self.evaluate(self.extend_genome(g, length)) for g in seeds[:self.params.population_size]]
        while len(population) < self.params.population_size:
            population.append(self.evaluate(self.random_genome(length)))
        return population

    @staticmethod
    def _fittest(population):
        best = population[0]
        for ind in population[1:]:
            if ind.fitness > best.fitness:
                best = ind
        return best

    # Operators

    def tournament(self):
        """Best of ``tournament_size`` individuals drawn uniformly with replacement."""
        picks = self.rng.integers(len(self.population), size=self.params.tournament_size)
        return self._fittest([self.population[i] for i in picks])

    def crossover(self, parent_a, parent_b):
        """
        Child walk built from the parents' pooled edges.

        Every consecutive pin pair of both parents goes into an undirected
        multigraph. Starting at parent_a's first pin, the child repeatedly
        takes a random remaining edge at its current pin and consumes it.
        When the current pin has no edges left, the walk continues to a
        random eligible neighbour it has not visited yet (any eligible
        neighbour if all were visited). Identical parents yield a copy.
        """
        genes_a = list(parent_a.genes)
        genes_b = list(parent_b.genes)
        if genes_a == genes_b:
            return genes_a

        graph = nx.MultiGraph()
        graph.add_edges_from(zip(genes_a[:-1], genes_a[1:]))
        graph.add_edges_from(zip(genes_b[:-1], genes_b[1:]))

        current = genes_a[0]
        child = [current]
        visited = {current}
        while len(child) < len(genes_a):
            edges = list(graph.edges(current, keys=True)) if graph.has_node(current) else []
            if edges:
                _, nxt, key = edges[int(self.rng.integers(len(edges)))]
                graph.remove_edge(current, nxt, key)
            else:
                nxt = self._repair_pin(current, visited)
            child.append(nxt)
            visited.add(nxt)
            current = nxt

        return child

    def _repair_pin(self, current, visited):
        options = self.cache.neighbors(current)
        fresh = [p for p in options if p not in visited]
        pool = fresh or options
        return pool[int(self.rng.integers(len(pool)))]

    def mutate(self, individual):
        """
        Re-pick genes with probability ``mutation_rate`` each, in place.

        Returns the individual with fitness refreshed if anything changed.
        """
        changed = False
        for i in range(len(individual.genes)):
            if self.rng.random() < self.params.mutation_rate:
                changed |= self._mutate_gene(individual.genes, individual.ink, i)
        if changed:
            individual.fitness = self.fitness(individual.ink)
        return individual

    def _mutate_gene(self, genes, ink, i):
        """Replace gene ``i`` with the best-scoring pin given its fixed neighbours."""
        neighbours = []
        if i > 0:
            neighbours.append(genes[i - 1])
        if i + 1 < len(genes):
            neighbours.append(genes[i + 1])
        if not neighbours:
            return False

        old = genes[i]
        for n in neighbours:
            ink[self.cache.pixels(n, old)] -= self.weight

        totals = np.zeros(self.cache.pin_count, dtype=np.float64)
        valid = np.ones(self.cache.pin_count, dtype=bool)
        for n in neighbours:
            fan = self.cache.fan(n)
            residual = self.demand[fan.pixels] - ink[fan.pixels]
            scores = score_bundle(residual, self.target[fan.pixels], fan.starts, fan.lengths, self.scoring)
            reachable = np.zeros(self.cache.pin_count, dtype=bool)
            reachable[fan.keys] = True
            valid &= reachable
            totals[fan.keys] += scores

        best = int(np.argmax(np.where(valid, totals, -np.inf))) if valid.any() else old
        genes[i] = best
        for n in neighbours:
            ink[self.cache.pixels(n, best)] += self.weight
        return best != old

    # Generational loop

    def step(self):
        if self.done:
            return False

        ranked = sorted(self.population, key=lambda ind: ind.fitness, reverse=True)
        next_population = ranked[:self.elite_count]
        while len(next_population) < self.params.population_size:
            parent_a = self.tournament()
            parent_b = self.tournament()
            child = self.evaluate(self.crossover(parent_a, parent_b))
            next_population.append(self.mutate(child))

        self.population = next_population
        self.generations += 1

        generation_best = self._fittest(self.population)
        self.history.append(generation_best.fitness)
        if generation_best.fitness > self.best.fitness:
            self.best = generation_best
            self.stale_generations = 0
        else:
            self.stale_generations += 1

        if self.stale_generations >= self.params.max_generations_without_improvement:
            self.stop(StopReason.STAGNATION)
            return False
        if self.params.max_generations is not None and self.generations >= self.params.max_generations:
            self.stop(StopReason.MAX_GENERATIONS)
            return False
        return True

    def progress_update(self):
        return ProgressUpdate(
            strategy=Strategy.POPULATION,
            step=self.generations,
            lines=len(self.best.genes) - 1,
            best_fitness=self.best.fitness,
            finished=self.done,
        )

    @trace(label="population_run")
    def run(self, progress=None, cancel=None):
        get_tracer().event(
            f"Population: size={len(self.population)}, genome={self.params.genome_length}, elites={self.elite_count}"
        )
        drive(self, self.yield_every, progress=progress, cancel=cancel)
        return self.outcome()

    def outcome(self):
        rendered = RESIDUAL_MAX - np.minimum(self.best.ink, RESIDUAL_MAX)
        return SearchOutcome(
            strategy=Strategy.POPULATION,
            stop_reason=self.stop_reason,
            sequence=list(self.best.genes),
            segments=segments_from_sequence(self.best.genes),
            steps=self.generations,
            best_fitness=self.best.fitness,
            fitness_history=list(self.history),
            buffers=[rendered.reshape(self.cache.size, self.cache.size).astype(np.uint8)],
        )
