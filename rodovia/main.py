"""Runner para a simulação de `simulation.py`.

Executar este arquivo cria uma pista reta com tráfego, roda a população de
carros AI e, opcionalmente, mostra tudo numa janela pygame. O melhor cérebro
pode ser salvo/descartado num arquivo JSON (slot "bestBrain") e carregado na
próxima execução.
"""
import argparse
import json
import logging
import os

from numpy.random import default_rng
try:
	import pygame
	PYGAME_AVAILABLE = True
except Exception:
	PYGAME_AVAILABLE = False

from rodovia.car import Car, ControlType
from rodovia.geometry import Point, Segment
from rodovia.network import ShapeMismatch, to_levels
from rodovia.simulation import CAR_HEIGHT, CAR_WIDTH, Simulation, generate_cars, start_angle

log = logging.getLogger("rodovia")

BRAIN_SLOT = "bestBrain"
# marcação de largada apontando para baixo: os carros sobem a pista (-y)
START_DIRECTION = Point(0.0, 1.0)


def default_borders(road_x: float = 0.0, half_width: float = 200.0, length: float = 100000.0):
	# duas bordas verticais, uma de cada lado da pista
	top = -length / 2.0
	bottom = length / 2.0
	return [
		Segment(Point(road_x - half_width, top), Point(road_x - half_width, bottom)),
		Segment(Point(road_x + half_width, top), Point(road_x + half_width, bottom)),
	]


def default_traffic(count: int, road_x: float = 0.0, lane_width: float = 100.0):
	# carros DUMMY à frente da largada, alternando entre as faixas
	traffic = []
	for i in range(count):
		lane = (i % 3) - 1
		traffic.append(Car(road_x + lane * lane_width, -150.0 - 200.0 * i,
						   CAR_WIDTH, CAR_HEIGHT, ControlType.DUMMY, max_speed=0.5))
	return traffic


def load_best_brain(path: str):
	"""Lê o cérebro salvo no slot; `None` se não houver arquivo ou slot.

	Um arquivo que não é JSON ou cujo topo não é um objeto levanta
	`ShapeMismatch`, como qualquer outro cérebro malformado.
	"""
	if not path or not os.path.exists(path):
		return None
	with open(path, "r", encoding="utf-8") as fh:
		try:
			data = json.load(fh)
		except json.JSONDecodeError as exc:
			raise ShapeMismatch(f"arquivo de cérebro ilegível: {exc}") from exc
	if not isinstance(data, dict):
		raise ShapeMismatch(f"arquivo de cérebro deve conter um objeto, encontrado {type(data).__name__}")
	return data.get(BRAIN_SLOT)


def save_best_brain(path: str, car: Car) -> None:
	data = {}
	if os.path.exists(path):
		with open(path, "r", encoding="utf-8") as fh:
			data = json.load(fh)
	data[BRAIN_SLOT] = to_levels(car.brain)
	with open(path, "w", encoding="utf-8") as fh:
		json.dump(data, fh)


def discard_best_brain(path: str) -> None:
	if not os.path.exists(path):
		return
	with open(path, "r", encoding="utf-8") as fh:
		data = json.load(fh)
	data.pop(BRAIN_SLOT, None)
	with open(path, "w", encoding="utf-8") as fh:
		json.dump(data, fh)


def build_simulation(args) -> Simulation:
	rng = default_rng(args.seed)
	borders = default_borders()
	traffic = default_traffic(args.traffic)

	heading = start_angle(START_DIRECTION)
	try:
		brain_levels = load_best_brain(args.brain) if args.brain else None
		cars = generate_cars(args.cars, 0.0, 100.0, heading, brain_levels=brain_levels,
							 mutation_amount=args.mutation, rng=rng)
	except ShapeMismatch as exc:
		# cérebro salvo incompatível ou ilegível: segue com cérebros novos
		log.warning("cérebro salvo ignorado: %s", exc)
		cars = generate_cars(args.cars, 0.0, 100.0, heading, rng=rng)

	if args.keys:
		cars.insert(0, Car(0.0, 100.0, CAR_WIDTH, CAR_HEIGHT, ControlType.KEYS, angle=heading, rng=rng))
	return Simulation(borders, cars, traffic)


def run_headless(sim: Simulation, ticks: int, verbose: bool = True) -> Car:
	report_every = max(1, int(ticks) // 10)

	def report(s):
		if verbose and (s.tick % report_every == 0 or s.tick == int(ticks)):
			print(f"Tick {s.tick:5d}: best fitness = {s.best_car.fitness:.3f}  vivos = {s.alive_count()}/{len(s.cars)}")

	return sim.run(ticks, on_tick=report)


def run_view(sim: Simulation, args) -> Car:
	pygame.init()
	screen_w = 900
	screen_h = 700
	screen = pygame.display.set_mode((screen_w, screen_h))
	pygame.display.set_caption("rodovia")
	clock = pygame.time.Clock()
	font = pygame.font.SysFont(None, 22)
	key_names = {pygame.K_UP: "up", pygame.K_DOWN: "down", pygame.K_LEFT: "left", pygame.K_RIGHT: "right"}
	player = sim.cars[0] if args.keys else None

	try:
		paused = False
		while sim.tick < args.ticks:
			for ev in pygame.event.get():
				if ev.type == pygame.QUIT:
					return sim.best_car
				elif ev.type in (pygame.KEYDOWN, pygame.KEYUP):
					if ev.type == pygame.KEYDOWN and ev.key == pygame.K_ESCAPE:
						return sim.best_car
					if ev.type == pygame.KEYDOWN and ev.key == pygame.K_SPACE:
						paused = not paused
					if player is not None and ev.key in key_names:
						player.controls.set_key(key_names[ev.key], ev.type == pygame.KEYDOWN)

			if paused:
				clock.tick(10)
				continue
			best = sim.step()

			# câmera segue o melhor carro
			cx = best.x - screen_w / 2.0
			cy = best.y - screen_h * 0.7

			def to_screen(p):
				return int(p.x - cx), int(p.y - cy)

			screen.fill((60, 60, 60))
			for border in sim.borders:
				pygame.draw.line(screen, (230, 230, 230), to_screen(border.p1), to_screen(border.p2), 4)
			for t in sim.traffic:
				pygame.draw.polygon(screen, (200, 80, 80), [to_screen(p) for p in t.polygon])
			for car in sim.cars:
				color = (120, 120, 120) if car.damaged else (50, 150, 240)
				if car is best:
					continue
				pygame.draw.polygon(screen, color, [to_screen(p) for p in car.polygon], 1)

			if best.sensor is not None:
				for ray, reading in zip(best.sensor.rays, best.sensor.readings):
					end = reading if reading is not None else ray[1]
					pygame.draw.line(screen, (240, 220, 50), to_screen(ray[0]), to_screen(end), 2)
					pygame.draw.line(screen, (0, 0, 0), to_screen(end), to_screen(ray[1]), 2)
			pygame.draw.polygon(screen, (120, 120, 120) if best.damaged else (50, 200, 50),
								[to_screen(p) for p in best.polygon])

			txt = font.render(f"tick {sim.tick}  best fitness {best.fitness:.1f}  vivos {sim.alive_count()}/{len(sim.cars)}", True, (220, 220, 220))
			screen.blit(txt, (8, 8))
			pygame.display.flip()
			clock.tick(args.fps)
	finally:
		pygame.quit()
	return sim.best_car


def run(args):
	if args.discard:
		discard_best_brain(args.brain)
		print(f"Cérebro descartado de {args.brain}")
		return

	sim = build_simulation(args)
	if args.view:
		if not PYGAME_AVAILABLE:
			print("Pygame não está disponível. Instale pygame (pip install pygame) e tente novamente.")
			return
		best = run_view(sim, args)
	else:
		best = run_headless(sim, args.ticks)

	print(f"Best fitness: {best.fitness:.3f}")
	if args.save and best.brain is not None:
		save_best_brain(args.brain, best)
		print(f"Cérebro salvo em {args.brain}")


def parse_args(argv=None):
	p = argparse.ArgumentParser()
	p.add_argument("--cars", type=int, default=100, help="número de carros AI")
	p.add_argument("--traffic", type=int, default=6, help="número de carros de tráfego")
	p.add_argument("--ticks", type=int, default=2000, help="número de passos da simulação")
	p.add_argument("--seed", type=int, help="seed aleatória")
	p.add_argument("--brain", default="best_brain.json", help="arquivo JSON com o slot do melhor cérebro")
	p.add_argument("--save", action="store_true", help="salvar o cérebro do melhor carro ao final")
	p.add_argument("--discard", action="store_true", help="apagar o cérebro salvo e sair")
	p.add_argument("--mutation", type=float, default=0.1, help="quanto mutar as cópias do cérebro salvo")
	p.add_argument("--keys", action="store_true", help="adiciona um carro controlado pelas setas")
	p.add_argument("--view", action="store_true", help="mostrar a simulação com pygame")
	p.add_argument("--fps", type=int, default=60, help="frames por segundo na visualização")
	p.add_argument("--log-level", dest="log_level", default="WARNING", help="nível de log")
	args = p.parse_args(argv)
	if args.cars < 1:
		p.error("--cars deve ser >= 1")
	return args


if __name__ == '__main__':
	args = parse_args()
	logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING),
						format="%(asctime)s %(name)s %(levelname)s %(message)s")
	run(args)
