"""Word lists and memorable host identifier generation."""

from __future__ import annotations

import itertools
import random
from collections.abc import Container

__all__ = ["ADJECTIVES", "NOUNS", "generate_memorable_id"]

_PLAIN_ATTEMPTS = 10

_ADJECTIVE_TEXT = """
Agile Amber Ancient Aqua Arctic Azure
Bold Brave Bright Bronze
Calm Clear Clever Cloud Cobalt Cool Coral Cosmic Crimson Crystal
Daring Dark Dawn Deep Desert Dewy Diamond Dim Dusty
Eager Early Earth Ebony Echo Elder Emerald Empty Evening
Fading Fair Fancy Fast Fiery First Fleet Forest Free Fresh Frost
Gentle Giant Glade Glass Gleam Global Golden Grand Grass Gray Green
Happy Harbor Hasty Hazel Heart Heavy Hidden High Hill Holy Honey Honor Hush
Icy Ideal Idle Indigo Inner Iron Island Ivory
Jade Jolly Jungle Junior
Keen Kind King
Lagoon Lake Large Last Late Laurel Lazy Leafy Light Lilac Little Lively
Lone Long Lost Loud Low Loyal Lucky Lunar Lush
Magic Major Maple Marble Marsh Master Meadow Merry Metal Midday Might
Mild Milky Mist Model Modern Moon Morning Moss Motor Mountain Murky Mystic
Narrow Navy Near Nebula New Night Noble North Nova
Oasis Ocean Old Olive Omega Onyx Open Orange Orchid Outer
Pale Paper Pastel Peak Pearl Pepper Petal Phantom Pilot Pine Pink Plain
Plum Polar Pond Proud Pure Purple Pyrite
Quake Quartz Queen Quest Quiet Quick Quill
Radiant Rainy Rapid Raven Regal Rich River Road Rocky Rogue Royal Ruby Rural Rusty
Sacred Saffron Sage Sand Sandy Sapphire Satin Scarlet Secret Serene Shadow
Shady Sharp Shimmer Shiny Shore Short Silent Silk Silver Sky Slate Slow
Small Smooth Snowy Solar Solid Space Spark Spicy Spirit Spring Star Still
Stone Storm Stray Stream Street Strong Sugar Summer Sun Sunny Super Surf
Sweet Swift
Terra Tidal Timber Tiny Topaz Trail Tranquil Tundra Twilight Twin
Ultra Urban
Valley Velvet Venom Verdant Vivid Void Volcano
Wander Warm Water Wave West Whisper White Wide Wild Windy Winter Wise Witty Wood
Young
Zenith Zephyr Zesty
"""

_NOUN_TEXT = """
Albatross Alligator Alpaca Anaconda Angler Ant Antelope Ape ArcticFox
Armadillo Arrow Aspen Aster Aurora Avalanche
Badger Balloon Bamboo Banyan Barracuda Basilisk Bass Bat Beacon Bear Beaver
Bee Beetle Bell Bison Blizzard Bloom Blossom Boa Boar Boat Bobcat Boulder
Breeze Bridge Brook Buffalo Bugle Bumblebee Butterfly Buzzard
Cactus Caldera Camel Canary Candle Canyon Capybara Caracal Caravan Cardinal
Caribou Cascade Castle Cat Caterpillar Catfish Cavern Cedar Centaur Chameleon
Channel Cheetah Cherry Chestnut Chickadee Chime Chimpanzee Chipmunk Cicada
Cinder Cipher Claw Cliff Clock Cloud Clover Cobra Cocoon Cod Comet Condor
Cone Coral Cougar Cove Coyote Crab Crane Crater Creek Crest Cricket Crocodile
Crow Crown Crystal Current Cypress
Dagger Daisy Dandelion Dart Dawn Deer Delta Desert Dewdrop Diamond Dingo
Dinosaur Dipper Dolphin Donkey Dove Dragon Dragonfly Dream Drift Drum Duck
Dune Dust
Eagle Earth Easel Echo Eel Egret Elder Elephant Elk Ember Emerald Envoy Ermine
Falcon Fang Feather Feline Fennel Fern Ferret Finch Firefly Fish Flame
Flamingo Fleet Flint Flower Flute Fog Forest Fossil Fox Fragment Fresco
Frog Frost
Gale Galleon Garden Garland Garnet Gazelle Gecko Gem Geode Gerbil Geyser
Ghost Giant Gibbon Ginger Giraffe Glacier Glade Glimmer Glow Gnat Goat
Goldfish Gopher Gorilla Goshawk Grail Granite Grape Grass Griffin Grove Gull
Hail Hammer Hamster Harbor Hare Harp Harrier Hawk Hazel Haze Heart Heath
Hedgehog Helm Hemlock Heron Hibiscus Highland Hill Hippo Hive Holly Horizon
Horn Hornet Horse Hound Hummingbird Hurricane Hyacinth Hyena
Ibex Ibis Iceberg Icon Iguana Impala Ink Insect Iris Island Ivory
Jackal Jaguar Jasmine Jasper Jay Jellyfish Jerboa Jewel Jungle Juniper
Kangaroo Kelp Kestrel Key Kingfisher Kite Kiwi Knight Koala Koi Kraken
Lagoon Lake Lamb Lamp Lance Land Lantern Larch Lark Laurel Lava Leaf Ledger
Leech Legend Lemming Lemon Lemur Leopard Liberty Lichen Light Lightning Lily
Lime Lion Lizard Llama Lobster Locust Log Loon Lotus Locket Lynx Lyre
Macaw Maelstrom Magma Magpie Mammoth Manatee Mandrake Mantis Maple Map Marble
Marigold Marlin Marmot Marsh Mask Mastodon Meadow Medal Meerkat Melody Meteor
Mill Mink Minnow Mint Mirage Mirror Mist Mockingbird Mole Monarch Mongoose
Monkey Monolith Monsoon Moon Moose Morning Mosaic Mosquito Moss Moth Mountain
Mouse Mule Murmur Mushroom Muskox Mustang Myrtle
Naiad Narwhal Needle Nest Newt Night Nightingale Nimbus Nomad NorthStar Note
Nova Nugget Nut Nuthatch Nymph
Oak Oasis Oat Obsidian Ocean Ocelot Octopus Olive Omega Opal Oracle Orange
Orb Orchid Orca Oriole Osprey Ostrich Otter Owl Ox Oyster
Pagoda Palm Panther Papaya Paper Paradise Parasol Parchment Parrot Parsley
Path Paw Peacock Peak Pearl Pegasus Pelican Pendant Penguin Pen Peony Pepper
Peregrine Petal Petrel Phantom Pheasant Phoenix Pigeon Pike Pilot Pine
Pinnacle Pioneer Pipe Piranha Pistol PitViper Planet Plankton Plateau
Platypus Plaza Plume Pointer PolarBear Pollen Pond Pony Poppy Porcupine
Portal Possum Prairie Primrose Prism Puffin Puma Pyramid Python
Quail Quartz Quest Quill
Rabbit Raccoon Racer Radiance Rainbow Ram Raptor Rat Rattlesnake Raven Ray
Realm Reed Reef Reflection Reindeer Relic Rhino Rhythm Ridge Rifle Ring
Ripple River Road Robin Rock Rocket Rodent Rook Rooster Root Rose Ruby Rune
Saber Sable Sage Sail Salamander Salmon Sand Sandalwood Sandpiper Sapphire
Sarcophagus Sardine Saturn Savanna Scale Scarab Scepter Scorpion Scout Scroll
Scythe Sea Seagull Seahorse Seal Seed Serpent Shadow Shaft Shark Sheep Shell
Shield Ship Shore Shrew Shrimp Shrine Sigil Silk Silver Skink Skunk Sky
Skylark Slate Slipper Sloth Smoke Snail Snake Snipe Snow Snowflake SnowLeopard
Soil Solstice Song Sorrel Soul Spark Sparrow Spear Sphinx Spider Spike Spire
Spirit Spring Sprite Spruce Spur Spyglass Squall Squid Squirrel Staff Stag
Stalactite Stallion Star Starfish Starling Statue Steam Steel Steeple Stick
Stingray Stoat Stone Stork Storm Stream Street Summit Sun Sunbeam Sunflower
Surf Swallow Swamp Swan Sword Sycamore Symbol
Tadpole Talisman Talon Tapestry Tarot Tarsier Tea Tempest Temple Termite
Thistle Thorn Thrush Thunder Tiger Timber Toad Token Tomb Topaz Torch Tornado
Torpedo Tortoise Toucan Tower Trail Train Treasure Tree Trellis Triangle
Trident Trillium Troll Trophy Trout Trumpet Trunk Tsunami Tuber Tulip Tundra
Tunnel Turquoise Turtle Twilight Typhoon
Umber Unicorn Urchin
Valley Vanguard Vanilla Vapor Vault Veil Velvet Venom Vessel Vine Violet
Viper Vista Voice Volcano Vortex Vulture
Wallaby Walnut Walrus Wand Wanderer Warbler Wasp Watch Water Waterfall Wave
Weasel Web Well Whale Wheat Whirlwind Whisper Willow Wind Wing Winter Wolf
Wolverine Wood Woodpecker Worm Wren
Xylophone
Yak Yam Yarrow Yew Yeti
Zebra Zenith Zephyr Zinnia Zircon Zodiac
"""

ADJECTIVES: tuple[str, ...] = tuple(_ADJECTIVE_TEXT.split())
NOUNS: tuple[str, ...] = tuple(_NOUN_TEXT.split())


def _pair(rng: random.Random) -> str:
    return rng.choice(ADJECTIVES) + rng.choice(NOUNS)


def generate_memorable_id(taken: Container[str], rng: random.Random | None = None) -> str:
    """Return an adjective+noun identifier that is not in ``taken``.

    Ten plain pairs are tried first; after that a counter starting at 2 is
    appended to each new random pair until a free identifier is found.
    """
    rng = rng if rng is not None else random.Random()
    for _ in range(_PLAIN_ATTEMPTS):
        candidate = _pair(rng)
        if candidate not in taken:
            return candidate
    for counter in itertools.count(2):
        candidate = f"{_pair(rng)}{counter}"
        if candidate not in taken:
            return candidate
    raise AssertionError("unreachable")