import math
import numpy as np
import sys
import os
import pytest
from numpy.random import default_rng
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))


from rodovia.car import Car, ControlType
from rodovia.geometry import Point, Segment, polys_intersect, segment_polygon
from rodovia.network import NeuralNetwork, ShapeMismatch, to_levels
from rodovia.simulation import Simulation, generate_cars, start_angle


def straight_road(half_width=200.0, length=10000.0):
    return [
        Segment(Point(-half_width, -length), Point(-half_width, length)),
        Segment(Point(half_width, -length), Point(half_width, length)),
    ]


def test_select_best_prefers_first_on_tie():
    cars = [Car(0.0, 0.0, 30.0, 50.0, ControlType.DUMMY) for _ in range(3)]
    cars[0].fitness = 1.0
    cars[1].fitness = 5.0
    cars[2].fitness = 5.0
    sim = Simulation([], cars)

    assert sim.select_best() is cars[1]


def test_step_selects_best_after_updates():
    slow = Car(0.0, 0.0, 30.0, 50.0, ControlType.KEYS, rng=default_rng(0))
    fast = Car(100.0, 0.0, 30.0, 50.0, ControlType.KEYS, rng=default_rng(0))
    fast.controls.forward = True
    sim = Simulation([], [slow, fast])

    best = sim.step()

    assert best is fast
    assert sim.best_car is fast
    assert sim.tick == 1


def test_cars_collide_with_previous_tick_traffic():
    """Um carro só vê o polígono do tráfego como estava no fim do tick anterior."""
    parked = Car(0.0, 0.0, 30.0, 50.0, ControlType.KEYS, rng=default_rng(0))
    # tráfego estreito logo atrás, subindo em direção ao carro parado
    traffic = Car(0.0, 50.5, 20.0, 50.0, ControlType.DUMMY)
    sim = Simulation([], [parked], [traffic])

    sim.step()
    # o tráfego já encosta, mas o retrato usado neste tick era o anterior
    assert polys_intersect(parked.polygon, traffic.polygon)
    assert parked.damaged is False

    sim.step()
    assert parked.damaged is True


def test_traffic_ignores_other_cars():
    parked = Car(0.0, 0.0, 30.0, 50.0, ControlType.KEYS, rng=default_rng(0))
    traffic = Car(0.0, 50.5, 20.0, 50.0, ControlType.DUMMY)
    sim = Simulation([], [parked], [traffic])

    sim.run(5)
    assert traffic.damaged is False
    assert sim.tick == 5


def test_run_calls_on_tick():
    sim = Simulation([], [Car(0.0, 0.0, 30.0, 50.0, ControlType.DUMMY)])
    seen = []

    sim.run(3, on_tick=lambda s: seen.append(s.tick))
    assert seen == [1, 2, 3]


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_single_ai_car_end_to_end(seed):
    """100 ticks com cérebro aleatório numa pista reta sem tráfego."""
    borders = straight_road()
    car = Car(0.0, 0.0, 30.0, 50.0, ControlType.AI, rng=default_rng(seed))
    sim = Simulation(borders, [car])

    expected_fitness = 0.0
    for _ in range(100):
        was_damaged = car.damaged
        sim.step()
        if not was_damaged:
            expected_fitness += car.speed
        if car.damaged and not was_damaged:
            assert any(polys_intersect(car.polygon, segment_polygon(b)) for b in borders)
        if not car.damaged:
            assert not any(polys_intersect(car.polygon, segment_polygon(b)) for b in borders)
        assert len(car.sensor.readings) == 5
        assert all(0.0 <= f <= 1.0 for f in car.sensor.features())

    assert car.fitness == expected_fitness
    assert sim.best_car is car


def test_car_driving_into_border_is_damaged_by_simulation():
    borders = [Segment(Point(-100.0, -30.0), Point(100.0, -30.0))]
    car = Car(0.0, 0.0, 30.0, 50.0, ControlType.KEYS, rng=default_rng(0))
    car.controls.forward = True
    sim = Simulation(borders, [car])

    sim.run(20)
    assert car.damaged is True
    fitness = car.fitness
    sim.run(5)
    assert car.fitness == fitness


def test_generate_cars_without_brain():
    cars = generate_cars(4, 10.0, 20.0, heading=0.5, rng=default_rng(0))

    assert len(cars) == 4
    assert all(c.control_type is ControlType.AI for c in cars)
    assert all((c.x, c.y, c.angle) == (10.0, 20.0, 0.5) for c in cars)
    assert not np.array_equal(cars[0].brain.levels[0].weights, cars[1].brain.levels[0].weights)


def test_generate_cars_from_saved_brain():
    """O primeiro carro recebe o cérebro salvo intacto; os outros, cópias mutadas."""
    saved = to_levels(NeuralNetwork([5, 6, 4], default_rng(5)))
    cars = generate_cars(3, 0.0, 0.0, brain_levels=saved, mutation_amount=0.1, rng=default_rng(1))

    assert to_levels(cars[0].brain) == saved
    for car in cars[1:]:
        assert car.brain.shape == [5, 6, 4]
        assert car.brain is not cars[0].brain
        assert not np.array_equal(car.brain.levels[0].weights, cars[0].brain.levels[0].weights)
        # mutação pequena: os pesos continuam próximos do original
        assert np.allclose(car.brain.levels[0].weights, cars[0].brain.levels[0].weights, atol=0.2)


def test_generate_cars_rejects_mismatched_brain(mocker):
    saved = to_levels(NeuralNetwork([3, 6, 4], default_rng(5)))
    make_car = mocker.patch("rodovia.simulation.Car")

    with pytest.raises(ShapeMismatch):
        generate_cars(3, 0.0, 0.0, brain_levels=saved, rng=default_rng(1))
    # nenhum carro chega a ser criado
    make_car.assert_not_called()


def test_start_angle_from_direction():
    assert start_angle(Point(0.0, 1.0)) == pytest.approx(0.0)
    assert start_angle(Point(1.0, 0.0)) == pytest.approx(math.pi / 2)


@pytest.mark.parametrize("direction", [Point(0.0, 1.0), Point(1.0, 0.0), Point(-3.0, 4.0)])
def test_start_angle_drives_against_marking(direction):
    """Com o ângulo da largada o carro anda no sentido oposto ao da marcação."""
    car = Car(0.0, 0.0, 30.0, 50.0, ControlType.KEYS, angle=start_angle(direction), rng=default_rng(0))
    car.controls.forward = True
    car.update([], [])

    norm = math.hypot(direction.x, direction.y)
    assert car.x / car.speed == pytest.approx(-direction.x / norm)
    assert car.y / car.speed == pytest.approx(-direction.y / norm)
